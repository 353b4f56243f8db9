"""
mlcheck - Fast ML dataset validation

Catch data issues before training: missing values, outliers, class
imbalance, duplicate rows and train/test drift, computed in a single
memory-bounded pass over the rows.
"""

__version__ = "0.1.0"

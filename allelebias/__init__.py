# File: allelebias/__init__.py
# Location: allelebias/allelebias/__init__.py

"""
allelebias Package.

This package provides the statistical core used to annotate cohort variant
records with allelic imbalance, parent-of-origin transmission bias and
sex-linked dosage tests.
"""

from .version import __version__

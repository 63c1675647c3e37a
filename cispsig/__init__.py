"""
cispsig: cisplatin-sensitivity gene-expression signatures

A computational framework for:
- Cross-validated differential expression consensus on GDSC cell lines
- Co-expression filtering against an independent tumor cohort
- Majority-vote signature consolidation and sample scoring
"""

__version__ = "0.1.0"
__author__ = "cispsig Team"

from . import data
from . import signature
from . import extraction
from . import utils

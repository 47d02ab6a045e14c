"""Publication tables of activation clusters from statistic brain maps.

This package labels the clusters of a thresholded statistic image with atlas
regions, networks and heuristic names, and reconciles the independent labeling
passes into one table row per cluster.
"""

from blobtable.atlas import Atlas
from blobtable.exceptions import AtlasError, BlobtableError, InvalidInputError, ReconciliationError
from blobtable.table import PublicationTables, assemble_table, table_for_publication

__all__ = [
    "Atlas",
    "AtlasError",
    "BlobtableError",
    "InvalidInputError",
    "PublicationTables",
    "ReconciliationError",
    "assemble_table",
    "table_for_publication",
]

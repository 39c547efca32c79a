"""Library views module.

Re-exports all view functions for URL routing compatibility.
"""

# Browse views
from .browse import (
    game_detail,
    game_list,
    game_random,
)

# Download views
from .download import download_game

# Scan views
from .scan import (
    index_jobs,
    reindex_games,
)

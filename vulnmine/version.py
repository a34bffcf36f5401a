"""vulnmine version and constants."""

__version__ = "1.0.0"
__app_name__ = "vulnmine"
__description__ = "Mine labelled Java vulnerability samples from security-fix commits"

# Exit codes
EXIT_SUCCESS = 0
EXIT_INVALID = 1
EXIT_ERROR = 2
EXIT_CONFIG_ERROR = 3

# Default configuration
DEFAULT_CONFIG = {
    "repos_dir": "data/repos",
    "output_dir": "dataset",
    "extensions": [".java"],
    "max_commits": None,
    "confidence_threshold": 0.6,
    "min_change_chars": 50,
    "dedupe_by_commit": True,
    "split": "0.7,0.15,0.15",
    "seed": 1337,
    "augment": False,
    "augment_splits": ["train"],
    "verbose": False,
}

SPLIT_NAMES = ("train", "val", "test")
STATISTICS_FILENAME = "dataset_statistics.json"

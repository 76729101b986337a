"""BuildMedic: turn local fixes into pull request review suggestions."""

__version__ = "0.1.0"

"""Sprint Proposal Engine - intake to priced sprint to agreement."""

__version__ = "1.0.0"

"""Guided spoken-recall practice: segmentation, recitation sessions and scoring."""

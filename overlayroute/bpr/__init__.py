"""Drift-plus-penalty request balancing and its load-generating client."""
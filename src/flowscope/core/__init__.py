"""Noise field, curl sampling, feature extraction and particle simulation."""

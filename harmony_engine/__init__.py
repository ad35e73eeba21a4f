"""
harmony-engine: decode audio and turn it into spectrogram / piano-key energy images.
"""
__version__ = "0.1.0"

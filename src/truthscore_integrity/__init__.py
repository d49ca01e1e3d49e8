"""TruthScore integrity engine.

Gaming-resistant reputation scoring, manipulation detection and copy-trading
cascade prevention for prediction-market wallets.
"""

__version__ = "0.1.0"

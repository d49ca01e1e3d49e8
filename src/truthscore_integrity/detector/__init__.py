"""Anti-gaming detection layer - manipulation pattern identification."""

from truthscore_integrity.detector.anomaly import StatisticalAnomalyDetector
from truthscore_integrity.detector.anti_gaming import AntiGamingDetector
from truthscore_integrity.detector.collusion import CoParticipation, CollusionDetector
from truthscore_integrity.detector.models import (
    Alert,
    AlertEvidence,
    AlertSeverity,
    AlertStatus,
    AlertType,
    InvalidAlertTransition,
    PatternScores,
    RecommendedAction,
    WalletAnalysis,
)
from truthscore_integrity.detector.scorer import RiskScorer
from truthscore_integrity.detector.sybil import SybilBucketKey, SybilClusterDetector, bucket_key
from truthscore_integrity.detector.wash_trading import WashTradingDetector

__all__ = [
    "Alert",
    "AlertEvidence",
    "AlertSeverity",
    "AlertStatus",
    "AlertType",
    "AntiGamingDetector",
    "CoParticipation",
    "CollusionDetector",
    "InvalidAlertTransition",
    "PatternScores",
    "RecommendedAction",
    "RiskScorer",
    "StatisticalAnomalyDetector",
    "SybilBucketKey",
    "SybilClusterDetector",
    "WalletAnalysis",
    "WashTradingDetector",
    "bucket_key",
]

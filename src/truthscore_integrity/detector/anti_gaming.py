"""Anti-gaming detector facade.

This module wires the four independent detectors together behind one
object, adds per-wallet risk analysis and chunked batch scanning.
Every check is a pure function of its input, so chunks can run in any
order and in parallel.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from functools import partial
from typing import TYPE_CHECKING

from truthscore_integrity.detector.anomaly import StatisticalAnomalyDetector
from truthscore_integrity.detector.collusion import CollusionDetector
from truthscore_integrity.detector.models import Alert, WalletAnalysis
from truthscore_integrity.detector.scorer import RiskScorer
from truthscore_integrity.detector.sybil import SybilClusterDetector
from truthscore_integrity.detector.wash_trading import WashTradingDetector
from truthscore_integrity.ingestor.models import Bet, usable_bets

if TYPE_CHECKING:
    from truthscore_integrity.config import DetectorSettings

logger = logging.getLogger(__name__)

ChunkJob = Callable[[], list[Alert]]


class AntiGamingDetector:
    """Runs the anti-gaming checks over bets and wallet records.

    The detector holds configuration only; it keeps no state between
    calls.

    Example:
        ```python
        detector = AntiGamingDetector.from_settings(get_settings().detector)

        alerts = await detector.scan_batch_async(bets)
        analysis = detector.analyze_wallet(
            "0xabc...", wallet_bets, wins=640, total_bets=1000
        )
        ```
    """

    def __init__(
        self,
        *,
        wash_trading: WashTradingDetector | None = None,
        sybil: SybilClusterDetector | None = None,
        anomaly: StatisticalAnomalyDetector | None = None,
        collusion: CollusionDetector | None = None,
        scorer: RiskScorer | None = None,
        sybil_report_all: bool = False,
        collusion_report_all: bool = False,
    ) -> None:
        """Initialize the facade.

        Args:
            wash_trading: Wash trading detector (default thresholds if None).
            sybil: Sybil cluster detector.
            anomaly: Statistical anomaly detector.
            collusion: Collusion detector.
            scorer: Risk scorer used by analyze_wallet.
            sybil_report_all: Batch scans report every Sybil bucket.
            collusion_report_all: Batch scans report every collusive pair.
        """
        self.wash_trading = wash_trading or WashTradingDetector()
        self.sybil = sybil or SybilClusterDetector()
        self.anomaly = anomaly or StatisticalAnomalyDetector()
        self.collusion = collusion or CollusionDetector()
        self.scorer = scorer or RiskScorer()
        self.sybil_report_all = sybil_report_all
        self.collusion_report_all = collusion_report_all

    @classmethod
    def from_settings(cls, settings: DetectorSettings) -> AntiGamingDetector:
        """Build the facade and its detectors from configuration."""
        return cls(
            wash_trading=WashTradingDetector.from_settings(settings),
            sybil=SybilClusterDetector.from_settings(settings),
            anomaly=StatisticalAnomalyDetector.from_settings(settings),
            collusion=CollusionDetector.from_settings(settings),
            sybil_report_all=settings.sybil_report_all,
            collusion_report_all=settings.collusion_report_all,
        )

    # Individual checks

    def detect_wash_trading(self, wallet: str, bets: Iterable[Bet] | None) -> Alert | None:
        """Flag a wallet betting both sides of the same epoch repeatedly."""
        return self.wash_trading.detect(wallet, bets)

    def detect_sybil_cluster(self, bets: Iterable[Bet] | None) -> Alert | None:
        """Flag look-alike bets from several wallets within one time bucket."""
        return self.sybil.detect(bets)

    def detect_statistical_anomaly(
        self, wallet: str, wins: int, total_bets: int
    ) -> Alert | None:
        """Flag a win rate that is improbable under a fair coin."""
        return self.anomaly.detect(wallet, wins, total_bets)

    def detect_collusion(self, bets: Iterable[Bet] | None) -> Alert | None:
        """Flag a wallet pair whose epoch participation overlaps too much."""
        return self.collusion.detect(bets)

    # Wallet analysis

    def analyze_wallet(
        self,
        address: str,
        bets: Iterable[Bet] | None = None,
        *,
        wins: int | None = None,
        total_bets: int | None = None,
        batch: Iterable[Bet] | None = None,
    ) -> WalletAnalysis:
        """Run every check relevant to one wallet and score its risk.

        Args:
            address: Wallet to analyze.
            bets: The wallet's own bets, for wash trading.
            wins: Resolved wins, for the anomaly check.
            total_bets: Resolved bets, for the anomaly check.
            batch: Bets from many wallets. When given, Sybil and collusion
                alerts that implicate the wallet are included.

        Returns:
            WalletAnalysis with alerts, pattern scores and risk score.
        """
        wallet = (address or "").lower()
        logger.info("Analyzing wallet: %s...", wallet[:10])

        alerts: list[Alert] = []
        wash = self.detect_wash_trading(wallet, bets)
        if wash is not None:
            alerts.append(wash)

        if wins is not None and total_bets is not None:
            anomaly = self.detect_statistical_anomaly(wallet, wins, total_bets)
            if anomaly is not None:
                alerts.append(anomaly)

        if batch is not None:
            batch_bets = usable_bets(batch)
            cross_wallet = self.sybil.detect_all(batch_bets) + self.collusion.detect_all(
                batch_bets
            )
            alerts.extend(alert for alert in cross_wallet if wallet in alert.wallets)

        patterns, risk_score = self.scorer.score(alerts)
        related = frozenset(w for alert in alerts for w in alert.wallets) - {wallet}

        if alerts:
            logger.info(
                "Wallet analysis: wallet=%s risk=%.1f alerts=%d",
                wallet[:10],
                risk_score,
                len(alerts),
            )

        return WalletAnalysis(
            address=wallet,
            risk_score=risk_score,
            alerts=tuple(alerts),
            patterns=patterns,
            related_wallets=related,
        )

    # Batch scanning

    def _chunk_jobs(self, bets: Iterable[Bet] | None) -> list[ChunkJob]:
        """Split a batch into independent detector jobs.

        Wash trading runs per wallet, Sybil clustering per (platform, epoch)
        and collusion per platform.
        """
        by_wallet: dict[str, list[Bet]] = {}
        by_round: dict[tuple[str, int], list[Bet]] = {}
        by_platform: dict[str, list[Bet]] = {}
        for bet in usable_bets(bets):
            by_wallet.setdefault(bet.trader.lower(), []).append(bet)
            by_round.setdefault(bet.market_key, []).append(bet)
            by_platform.setdefault(bet.platform, []).append(bet)

        jobs: list[ChunkJob] = []
        for wallet in sorted(by_wallet):
            jobs.append(partial(self._wash_job, wallet, by_wallet[wallet]))
        for round_bets in by_round.values():
            jobs.append(partial(self._sybil_job, round_bets))
        for platform_bets in by_platform.values():
            jobs.append(partial(self._collusion_job, platform_bets))
        return jobs

    def _wash_job(self, wallet: str, bets: list[Bet]) -> list[Alert]:
        alert = self.wash_trading.detect(wallet, bets)
        return [alert] if alert is not None else []

    def _sybil_job(self, bets: list[Bet]) -> list[Alert]:
        if self.sybil_report_all:
            return self.sybil.detect_all(bets)
        alert = self.sybil.detect(bets)
        return [alert] if alert is not None else []

    def _collusion_job(self, bets: list[Bet]) -> list[Alert]:
        if self.collusion_report_all:
            return self.collusion.detect_all(bets)
        alert = self.collusion.detect(bets)
        return [alert] if alert is not None else []

    def scan_batch(self, bets: Iterable[Bet] | None) -> list[Alert]:
        """Run every batch-level check over a bet batch.

        Args:
            bets: Bets from any number of wallets, platforms and epochs.

        Returns:
            Alerts in job order: wash trading, Sybil, then collusion.
        """
        jobs = self._chunk_jobs(bets)
        alerts = [alert for job in jobs for alert in job()]
        logger.debug("Batch scan complete: jobs=%d alerts=%d", len(jobs), len(alerts))
        return alerts

    async def scan_batch_async(self, bets: Iterable[Bet] | None) -> list[Alert]:
        """Run ``scan_batch`` with chunks spread over worker threads.

        Returns the same alerts in the same order as ``scan_batch``.
        """
        jobs = self._chunk_jobs(bets)
        if not jobs:
            return []

        results = await asyncio.gather(*(asyncio.to_thread(job) for job in jobs))
        alerts = [alert for chunk in results for alert in chunk]
        logger.debug("Async batch scan complete: jobs=%d alerts=%d", len(jobs), len(alerts))
        return alerts

"""
Built-in example prompts.

Starting points users can load and edit before generating.
"""

from dataclasses import dataclass
from typing import Optional

from pinesmith.models.script import ArtifactKind, CapabilityTier, GenerationRequest


@dataclass(frozen=True)
class PromptTemplate:
    """An example request shown to users."""

    label: str
    artifact_kind: ArtifactKind
    summary: str
    text: str

    @property
    def overlay(self) -> bool:
        """Strategies and texts that ask for an overlay draw on the price pane."""
        return self.artifact_kind == ArtifactKind.STRATEGY or "Overlay" in self.text

    def to_request(
        self,
        target_version: str = "v6",
        model: Optional[str] = None,
        capability_tier: Optional[CapabilityTier] = None,
    ) -> GenerationRequest:
        return GenerationRequest(
            description=self.text,
            artifact_kind=self.artifact_kind,
            overlay=self.overlay,
            target_version=target_version,
            model=model,
            capability_tier=capability_tier,
        )


EXAMPLE_TEMPLATES: tuple[PromptTemplate, ...] = (
    PromptTemplate(
        label="Trend Following (Golden Cross)",
        artifact_kind=ArtifactKind.STRATEGY,
        summary="Classic SMA crossover with volatility filter & risk management",
        text=(
            "Create a Strategy. Enter Long when SMA 50 crosses above SMA 200. \n\n"
            "FILTERS:\n"
            "1. Only trade if price is above EMA 200 (Trend Filter).\n"
            "2. Only trade if ADX > 25 (Volatility Filter).\n\n"
            "RISK MANAGEMENT:\n"
            "- Use ATR-based Stop Loss (1.5x) and Take Profit (3x).\n"
            "- Add a visual Dashboard table showing Trend and ADX status."
        ),
    ),
    PromptTemplate(
        label="RSI Mean Reversion",
        artifact_kind=ArtifactKind.STRATEGY,
        summary="Counter-trend strategy buying oversold dips",
        text=(
            "Create a Mean Reversion Strategy. \n\n"
            "LOGIC:\n"
            "- Buy when RSI (14) crosses under 30.\n"
            "- Sell when RSI crosses over 70.\n\n"
            "ADVANCED:\n"
            "- Use a dynamic position size based on 1% risk per trade.\n"
            "- Plot the Buy/Sell signals clearly on the chart.\n"
            "- Add date range filtering for backtesting."
        ),
    ),
    PromptTemplate(
        label="Multi-Timeframe Dashboard",
        artifact_kind=ArtifactKind.INDICATOR,
        summary="Scanner for RSI status across 3 timeframes",
        text=(
            "Create a Dashboard Indicator (non-overlay).\n\n"
            "Display a table in the top-right corner showing RSI (14) values for:\n"
            "1. Current Timeframe\n"
            "2. 4-Hour Timeframe\n"
            "3. Daily Timeframe\n\n"
            "Color the cell Green if RSI < 30 (Oversold) and Red if RSI > 70 (Overbought). "
            "Otherwise Gray."
        ),
    ),
    PromptTemplate(
        label="Volume Breakout",
        artifact_kind=ArtifactKind.STRATEGY,
        summary="Price action + Volume spike detection",
        text=(
            "Create a Breakout Strategy.\n\n"
            "CONDITIONS:\n"
            "- Buy when Close is higher than the highest high of the last 20 bars.\n"
            "- AND Volume is 200% higher than the SMA(20) of volume.\n\n"
            "EXIT:\n"
            "- Trailing Stop of 2%.\n"
            "- Add an alertcondition for the breakout."
        ),
    ),
)


def get_template(label: str) -> PromptTemplate:
    """
    Look up a template by label (case-insensitive).

    Raises:
        KeyError: If no template has that label
    """
    wanted = label.strip().lower()
    for template in EXAMPLE_TEMPLATES:
        if template.label.lower() == wanted:
            return template
    raise KeyError(label)

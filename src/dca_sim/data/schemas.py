"""
Data schemas for CSV file validation.

Defines expected columns for weekly price inputs and backtest outputs.
"""

from dataclasses import dataclass


@dataclass
class ColumnSchema:
    """Schema definition for a single column."""
    name: str
    dtype: str  # pandas dtype string
    required: bool = True


@dataclass
class FileSchema:
    """Schema definition for a file."""
    name: str
    columns: list[ColumnSchema]
    description: str

    @property
    def required_columns(self) -> list[str]:
        """Get list of required column names."""
        return [c.name for c in self.columns if c.required]

    @property
    def all_columns(self) -> list[str]:
        """Get list of all column names."""
        return [c.name for c in self.columns]

    def validate_columns(self, df_columns: list[str]) -> tuple[bool, list[str]]:
        """
        Validate that a dataframe has the required columns.

        Returns:
            Tuple of (is_valid, list of missing columns)
        """
        missing = [col for col in self.required_columns if col not in df_columns]
        return len(missing) == 0, missing


WEEKLY_PRICES_SCHEMA = FileSchema(
    name="weekly_prices",
    columns=[
        ColumnSchema("date", "object"),
        ColumnSchema("adjusted_close", "float64"),
    ],
    description="Weekly adjusted close prices for one symbol (<SYMBOL>.csv)",
)

RESULTS_SCHEMA = FileSchema(
    name="results",
    columns=[
        ColumnSchema("symbol", "object"),
        ColumnSchema("total_invested", "float64"),
        ColumnSchema("current_value", "float64"),
        ColumnSchema("net_profit", "float64"),
        ColumnSchema("total_shares", "float64"),
        ColumnSchema("average_cost", "float64"),
        ColumnSchema("current_price", "float64"),
        ColumnSchema("total_return_percent", "float64"),
        ColumnSchema("weeks", "int64"),
    ],
    description="One row per simulated symbol",
)

HISTORY_SCHEMA = FileSchema(
    name="history",
    columns=[
        ColumnSchema("date", "object"),
        ColumnSchema("invested", "float64"),
        ColumnSchema("value", "float64"),
        ColumnSchema("price", "float64"),
        ColumnSchema("shares", "float64"),
        ColumnSchema("average_cost", "float64"),
    ],
    description="Weekly history of one simulated symbol",
)

PORTFOLIO_HISTORY_SCHEMA = FileSchema(
    name="portfolio_history",
    columns=[
        ColumnSchema("date", "object"),
        ColumnSchema("invested", "float64"),
        ColumnSchema("value", "float64"),
    ],
    description="Portfolio-wide invested and value per date",
)

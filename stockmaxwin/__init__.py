"""stockmaxwin - A股主板选股工具

从东方财富行情接口分页拉取主板报价，按基本面初选后并发拉取日 K 线，
计算均线与 MACD 指标并按策略筛选出候选股票。
"""

from stockmaxwin.core.models import BriefRecord, Bar, EnrichedRecord, IndexQuote, QuoteRecord

__version__ = "0.1.0"

__all__ = [
    "Bar",
    "BriefRecord",
    "EnrichedRecord",
    "IndexQuote",
    "QuoteRecord",
    "__version__",
]

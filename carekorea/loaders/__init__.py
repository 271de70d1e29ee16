"""Data loading: keyword CSV imports, Search Console performance and the SEO guide index."""

from carekorea.loaders.keywords import (
    detect_locale,
    import_keywords,
    load_keyword_file,
    parse_keyword_csv,
)
from carekorea.loaders.search_console import collect_gsc_data, get_date_range
from carekorea.loaders.seo_guide import index_chunks, split_into_chunks

__all__ = [
    "detect_locale",
    "parse_keyword_csv",
    "load_keyword_file",
    "import_keywords",
    "collect_gsc_data",
    "get_date_range",
    "split_into_chunks",
    "index_chunks",
]

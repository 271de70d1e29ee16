"""Blog content engine for GetCareKorea (medical tourism in Korea).

Package structure:
    carekorea/config.py        – paths, API keys, model settings, locales, DB overrides
    carekorea/store/           – Supabase access (keywords, personas, posts, storage)
    carekorea/loaders/         – data loading (keyword CSV import, Search Console, SEO guide)
    carekorea/pipeline/        – persona selection, retrieval, Claude content, images,
                                 translation, the orchestrating pipeline and the
                                 learning step for high performers
    carekorea/validation/      – quality scoring, grading, and report formatting
    carekorea/publishing/      – publish-readiness checks and auto publishing
"""

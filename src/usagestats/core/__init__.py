"""Core package of usagestats.

Holds the reporting engine: the snapshot contract, builder, merger, reporter,
lifecycle controller and their storage/stats collaborators. Import from the
submodules directly, e.g.:
    from usagestats.core.lifecycle import AnalyticsService
    from usagestats.core.settings import load_settings, get_logger
"""

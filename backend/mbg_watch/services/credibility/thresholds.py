"""
Centralized scoring constants -- single source of truth.

Every tunable number used by the factor evaluators, the aggregator and the
duplicate/corroboration detector lives here. Evaluators import these
constants instead of hard-coding magic numbers.

The credibility cut points are also persisted in the ``scoring_config``
table (seeded from the defaults below); the persisted copy wins at runtime.
"""
import os

# ---------------------------------------------------------------------------
# Factor maximums
# ---------------------------------------------------------------------------

MAX_RELATION = 3
MAX_LOCATION_TIME = 3
MAX_EVIDENCE = 3
MAX_NARRATIVE = 3
MAX_REPORTER_HISTORY = 3
MAX_SIMILARITY = 3

# ---------------------------------------------------------------------------
# Credibility level cut points (inclusive lower bounds)
# ---------------------------------------------------------------------------

# total >= HIGH_MIN_SCORE -> high
HIGH_MIN_SCORE = 12

# MEDIUM_MIN_SCORE <= total < HIGH_MIN_SCORE -> medium, below -> low
MEDIUM_MIN_SCORE = 7

# ---------------------------------------------------------------------------
# Submission gate
# ---------------------------------------------------------------------------

# Minimum narrative length accepted at submission (matches the form's floor)
NARRATIVE_MIN_LENGTH = 50

# Maximum title length stored
TITLE_MAX_LENGTH = 255

# ---------------------------------------------------------------------------
# Relation factor
# ---------------------------------------------------------------------------

FIRST_HAND_RELATIONS = ("parent", "teacher", "principal", "supplier", "student")

# Score for a first-hand role whose vantage point does not cover the category
OFF_CATEGORY_FIRST_HAND_SCORE = 2

COMMUNITY_RELATION_SCORE = 2

# "other" with a non-empty free-text detail
OTHER_WITH_DETAIL_SCORE = 1

# ---------------------------------------------------------------------------
# Location/time factor
# ---------------------------------------------------------------------------

# Location specificity points (province+city+district vs province+city)
LOCATION_FULL_POINTS = 1.5
LOCATION_CITY_POINTS = 1.0

# Time-of-day points when the hour falls in a window the relation witnesses
TIME_WINDOW_POINTS = 1.5

# Hour inside the broad program day but no matching relation window
TIME_GENERAL_HOURS_POINTS = 0.5

# Incidents older than this (relative to submission) are implausible
INCIDENT_MAX_AGE_DAYS = 365

# Incidents older than this only earn the location component
INCIDENT_STALE_AGE_DAYS = 90

# ---------------------------------------------------------------------------
# Evidence factor
# ---------------------------------------------------------------------------

# File count considered a complete evidence set when at least two kinds exist
EVIDENCE_COMPLETE_COUNT = 3
EVIDENCE_COMPLETE_KINDS = 2

# Narrative length that counts as a detailed written account
DETAILED_NARRATIVE_LENGTH = 200

# With zero usable files the evidence factor never exceeds this
NO_EVIDENCE_CEILING = 1

# ---------------------------------------------------------------------------
# Narrative factor
# ---------------------------------------------------------------------------

# Below this length the narrative factor is capped at NARRATIVE_SHORT_CAP
NARRATIVE_SCORING_MIN_LENGTH = 100
NARRATIVE_SHORT_CAP = 1

# ---------------------------------------------------------------------------
# Reporter history factor
# ---------------------------------------------------------------------------

# First-time reporters (no decided reports) receive this neutral value
REPORTER_HISTORY_NEUTRAL = 1

REPORTER_TRUSTED_RATIO = 0.5
REPORTER_TRUSTED_MIN_DECIDED = 2
REPORTER_FAIR_RATIO = 0.3

# ---------------------------------------------------------------------------
# Duplicate / corroboration detection
# ---------------------------------------------------------------------------

# Incident-date window (days, either side) for candidate reports
DUPLICATE_DATE_WINDOW_DAYS = 3

# Same-reporter narrative similarity above which the report is a duplicate
DUPLICATE_NARRATIVE_SIMILARITY = 0.85

# Different-reporter narrative similarity above which a report corroborates
CORROBORATION_NARRATIVE_SIMILARITY = 0.30

# Word n-gram size for shingle similarity
SHINGLE_SIZE = 3

# Hard cap on candidates pulled from the store per search
DUPLICATE_CANDIDATE_LIMIT = 200

# Search timeout before the similarity factor degrades
DUPLICATE_SEARCH_TIMEOUT_SECONDS = float(os.getenv("DUPLICATE_SEARCH_TIMEOUT_SECONDS", "2.0"))

# Similarity score used while the store is unavailable (provisional)
SIMILARITY_DEGRADED_SCORE = 1

# Awarded when prior reports from other reporters exist at the location/time
# but none of their narratives match
LOCATION_HISTORY_SCORE = 1

# ---------------------------------------------------------------------------
# Submission rate limiting
# ---------------------------------------------------------------------------

SUBMISSION_RATE_LIMIT = int(os.getenv("SUBMISSION_RATE_LIMIT", "10"))
SUBMISSION_RATE_WINDOW_MINUTES = int(os.getenv("SUBMISSION_RATE_WINDOW_MINUTES", "60"))

# ---------------------------------------------------------------------------
# Program operating hours
# ---------------------------------------------------------------------------

# Incident timestamps are stored in UTC; program windows are local (WIB)
PROGRAM_UTC_OFFSET_HOURS = int(os.getenv("PROGRAM_UTC_OFFSET_HOURS", "7"))

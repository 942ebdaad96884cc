"""Raw SQL for the aggregation read models.

Time spent on a heartbeat is the gap to the same user's next heartbeat,
counted only while the gap stays within ``:timeout_seconds``; the last
heartbeat of a window counts zero. Durations are always computed over every
heartbeat of the window before any project or tag filter is applied, so
switching to another project ends the current stretch of activity.
"""

from __future__ import annotations

from sqlalchemy import TextClause, text

_DURATIONS = """
beats AS (
    SELECT
        h.*,
        LEAD(h.time_sent) OVER (PARTITION BY h.sender ORDER BY h.time_sent) AS next_sent
    FROM heartbeats h
    WHERE {sender_filter}
      AND h.time_sent >= :start
      AND h.time_sent < :end
),
durations AS (
    SELECT
        beats.*,
        CASE
            WHEN next_sent IS NULL THEN 0
            WHEN EXTRACT(EPOCH FROM next_sent - time_sent) > CAST(:timeout_seconds AS integer) THEN 0
            ELSE EXTRACT(EPOCH FROM next_sent - time_sent)
        END AS seconds
    FROM beats
)
"""

_TAGGED_PROJECTS = """
    SELECT pt.project_name
    FROM project_tags pt
    JOIN tags t ON t.id = pt.tag_id
    WHERE pt.owner = :username
      AND t.owner = :username
      AND t.name = :tag
"""


def _with_durations(body: str, *, per_user: bool = True) -> TextClause:
    sender_filter = "h.sender = :username" if per_user else "TRUE"
    return text("WITH " + _DURATIONS.format(sender_filter=sender_filter) + "," + body)


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------

_STATS_BODY = """
grouped AS (
    SELECT
        date_trunc('day', time_sent) AS day,
        project, language, editor, branch, platform, machine, entity,
        SUM(seconds) AS seconds
    FROM durations
    {where}
    GROUP BY 1, project, language, editor, branch, platform, machine, entity
)
SELECT
    day, project, language, editor, branch, platform, machine, entity,
    CAST(ROUND(seconds) AS bigint) AS total_seconds,
    CAST(COALESCE(seconds / NULLIF(SUM(seconds) OVER (PARTITION BY day), 0), 0) AS double precision) AS pct,
    CAST(ROUND(SUM(seconds) OVER (PARTITION BY day)) AS bigint) AS daily_total_seconds
FROM grouped
ORDER BY day ASC, total_seconds DESC, project, language, entity
LIMIT :cutoff
"""

USER_ACTIVITY = _with_durations(_STATS_BODY.format(where=""))

USER_ACTIVITY_BY_TAG = _with_durations(
    _STATS_BODY.format(where="WHERE project IN (" + _TAGGED_PROJECTS + ")")
)

_PROJECT_STATS_BODY = """
grouped AS (
    SELECT
        date_trunc('day', time_sent) AS day,
        language,
        entity,
        CAST(EXTRACT(DOW FROM time_sent) AS integer) AS weekday,
        CAST(EXTRACT(HOUR FROM time_sent) AS integer) AS hour,
        SUM(seconds) AS seconds
    FROM durations
    WHERE {where}
    GROUP BY 1, language, entity, 4, 5
)
SELECT
    day, language, entity, weekday, hour,
    CAST(ROUND(seconds) AS bigint) AS total_seconds,
    CAST(COALESCE(seconds / NULLIF(SUM(seconds) OVER (PARTITION BY day), 0), 0) AS double precision) AS pct,
    CAST(ROUND(SUM(seconds) OVER (PARTITION BY day)) AS bigint) AS daily_total_seconds
FROM grouped
ORDER BY day ASC, total_seconds DESC, language, entity
LIMIT :cutoff
"""

PROJECT_STATS = _with_durations(_PROJECT_STATS_BODY.format(where="project = :project"))

TAG_STATS = _with_durations(_PROJECT_STATS_BODY.format(where="project IN (" + _TAGGED_PROJECTS + ")"))

# A new range starts whenever the previous heartbeat did not carry over
# (gap beyond the timeout) or the language/project changed.
TIMELINE = _with_durations(
    """
flagged AS (
    SELECT
        time_sent, seconds, language, project,
        CASE
            WHEN LAG(seconds) OVER w > 0
             AND LAG(language) OVER w IS NOT DISTINCT FROM language
             AND LAG(project) OVER w IS NOT DISTINCT FROM project
            THEN 0
            ELSE 1
        END AS new_range
    FROM durations
    WINDOW w AS (ORDER BY time_sent)
),
numbered AS (
    SELECT flagged.*, SUM(new_range) OVER (ORDER BY time_sent) AS range_id
    FROM flagged
)
SELECT
    language,
    project,
    MIN(time_sent) AS range_start,
    MAX(time_sent + CAST(seconds AS double precision) * INTERVAL '1 second') AS range_end
FROM numbered
GROUP BY range_id, language, project
ORDER BY range_start, project, language
LIMIT :cutoff
"""
)

LEADERBOARDS = _with_durations(
    """
totals AS (
    SELECT sender, language, SUM(seconds) AS seconds
    FROM durations
    GROUP BY sender, language
)
SELECT sender, language, CAST(ROUND(seconds) AS bigint) AS total_seconds
FROM totals
WHERE seconds > 0
ORDER BY total_seconds DESC, sender ASC, language ASC
LIMIT :cutoff
""",
    per_user=False,
)

# ---------------------------------------------------------------------------
# Totals
# ---------------------------------------------------------------------------

TOTAL_TIME = _with_durations(
    """
totals AS (SELECT SUM(seconds) AS seconds FROM durations)
SELECT CAST(ROUND(COALESCE(seconds, 0)) AS bigint) FROM totals
"""
)

# NULL (not zero) when the project has no heartbeats in the window.
PROJECT_TOTAL_TIME = _with_durations(
    """
totals AS (SELECT SUM(seconds) AS seconds FROM durations WHERE project = :project)
SELECT CAST(ROUND(seconds) AS bigint) FROM totals
"""
)

# One row per requested range, emitted last range first.
TOTAL_TIME_BETWEEN = text(
    """
WITH ranges AS (
    SELECT *
    FROM unnest(
        CAST(:usernames AS text[]),
        CAST(:projects AS text[]),
        CAST(:starts AS timestamptz[]),
        CAST(:ends AS timestamptz[])
    ) WITH ORDINALITY AS r(username, project, range_start, range_end, ord)
)
SELECT CAST(ROUND(COALESCE(SUM(d.seconds), 0)) AS bigint) AS total_seconds
FROM ranges r
LEFT JOIN LATERAL (
    SELECT
        CASE
            WHEN next_sent IS NULL THEN 0
            WHEN EXTRACT(EPOCH FROM next_sent - time_sent) > CAST(:timeout_seconds AS integer) THEN 0
            ELSE EXTRACT(EPOCH FROM next_sent - time_sent)
        END AS seconds
    FROM (
        SELECT
            h.time_sent,
            h.project,
            LEAD(h.time_sent) OVER (ORDER BY h.time_sent) AS next_sent
        FROM heartbeats h
        WHERE h.sender = r.username
          AND h.time_sent >= r.range_start
          AND h.time_sent < r.range_end
    ) beats
    WHERE beats.project = r.project
) d ON TRUE
GROUP BY r.ord
ORDER BY r.ord DESC
"""
)

"""MSYNC — Metrics SQL.

Read-only aggregate queries against the service database. Every query takes
a half-open ``[:start, :end)`` interval of timezone-aware timestamps; the
local-calendar conversion happens in the caller.
"""

from sqlalchemy import text

# Members whose account predates the integration cutoff are "converted",
# the rest are "new". Bound as :cutoff.
ACTOR_PHYSICAL_CARD = "회원실물카드신청"
STATUS_ISSUED = "발급완료"
CARD_TYPE_ONLINE = "온라인"

CARD_PARAMS = {
    "actor_physical": ACTOR_PHYSICAL_CARD,
    "status_issued": STATUS_ISSUED,
    "card_online": CARD_TYPE_ONLINE,
}

# ── Integration metrics ──

TOTAL_INTEGRATED_USERS = """
    SELECT COUNT(DISTINCT uli.cloud_id)
    FROM user_login_info uli
    WHERE uli.ssbyp = '00'
      AND uli.reg_dt >= :start AND uli.reg_dt < :end
"""

NEW_INTEGRATED_USERS = """
    SELECT COUNT(DISTINCT u.cloud_id)
    FROM user_login_info uli
    JOIN users u ON uli.cloud_id = u.cloud_id
    WHERE uli.ssbyp = '00'
      AND u.reg_dt >= :cutoff
      AND uli.reg_dt >= :start AND uli.reg_dt < :end
"""

CONVERTED_INTEGRATED_USERS = """
    SELECT COUNT(DISTINCT u.cloud_id)
    FROM user_login_info uli
    JOIN users u ON uli.cloud_id = u.cloud_id
    WHERE uli.ssbyp = '00'
      AND u.reg_dt < :cutoff
      AND uli.reg_dt >= :start AND uli.reg_dt < :end
"""

PHYSICAL_CARD_REQUESTS = """
    SELECT COUNT(*)
    FROM user_card_hist uch
    WHERE uch.actor = :actor_physical
      AND uch.reg_dt >= :start AND uch.reg_dt < :end
"""

ONLINE_AUTO_ISSUED_CARDS = """
    SELECT COUNT(DISTINCT uch.user_id)
    FROM user_card_hist uch
    WHERE uch.status = :status_issued
      AND uch.card_ty = :card_online
      AND uch.reg_dt >= :start AND uch.reg_dt < :end
"""

METRIC_QUERIES = {
    "total_integrated_users": TOTAL_INTEGRATED_USERS,
    "new_integrated_users": NEW_INTEGRATED_USERS,
    "converted_integrated_users": CONVERTED_INTEGRATED_USERS,
    "physical_card_requests": PHYSICAL_CARD_REQUESTS,
    "online_auto_issued_cards": ONLINE_AUTO_ISSUED_CARDS,
}


def _combined_integration_sql() -> str:
    columns = ",\n".join(
        f"    ({sql.strip()}) AS {name}" for name, sql in METRIC_QUERIES.items()
    )
    return f"SELECT\n{columns}"


# One round trip for every integration metric over the interval
INTEGRATION_DATA = text(_combined_integration_sql())

# ── Mileage ──

MILEAGE_STATS = text("""
    SELECT
      COALESCE(SUM(mce.elctc_pc), 0) AS total_pc,
      COALESCE(SUM(mce.paid_point_price), 0) AS used_point,
      COALESCE(SUM(mce.paid_card_price), 0) AS use_card_price,
      COALESCE(SUM(mce.paid_price), 0) AS paid_price,
      COALESCE(SUM(cmh.mileage), 0) AS served_mileage,
      COUNT(mce.id) AS charging_count,
      CASE WHEN SUM(mce.elctc_pc) > 0
           THEN ROUND((SUM(cmh.mileage) / SUM(mce.elctc_pc)) * 100, 2) ELSE 0 END
        AS elctc_pc_ratio,
      CASE WHEN SUM(mce.paid_price) > 0
           THEN ROUND((SUM(cmh.mileage) / SUM(mce.paid_price)) * 100, 2) ELSE 0 END
        AS paid_price_ratio,
      COUNT(CASE WHEN cmh.status = 'SUCCESS' THEN 1 END) AS point_success_count,
      COUNT(CASE WHEN cmh.status != 'SUCCESS' THEN 1 END) AS point_other_status_count,
      CASE WHEN COUNT(mce.id) > 0
           THEN ROUND(SUM(mce.elctc_pc) / COUNT(mce.id), 2) ELSE 0 END AS avg_price,
      CASE WHEN COUNT(mce.id) > 0
           THEN ROUND(SUM(mce.paid_price) / COUNT(mce.id), 2) ELSE 0 END AS avg_paid_price,
      CASE WHEN COUNT(mce.id) > 0
           THEN ROUND(SUM(cmh.mileage) / COUNT(mce.id), 2) ELSE 0 END AS avg_mileage,
      COALESCE(SUM(mce.elctc_qy), 0) AS charging_qy
    FROM mmny_chrgr_elctc mce
    JOIN collect_mileage_history cmh ON cmh.elctc_id::integer = mce.id
    WHERE mce.end_dt >= :start AND mce.end_dt < :end
    HAVING COUNT(mce.id) > 0
""")

MILEAGE_GRADE_STATS = text("""
    SELECT
      COALESCE(cmh.grade_nm, 'Unknown') AS grade_nm,
      COUNT(cmh.id) AS charging_count,
      CASE WHEN COUNT(cmh.id) > 0
           THEN ROUND(SUM(mce.elctc_pc) / COUNT(cmh.id), 2) ELSE 0 END AS avg_pc,
      CASE WHEN COUNT(cmh.id) > 0
           THEN ROUND(SUM(mce.paid_price) / COUNT(cmh.id), 2) ELSE 0 END AS avg_paid_price,
      CASE WHEN COUNT(cmh.id) > 0
           THEN ROUND(SUM(cmh.mileage) / COUNT(cmh.id), 2) ELSE 0 END AS avg_mileage
    FROM mmny_chrgr_elctc mce
    JOIN collect_mileage_history cmh ON cmh.elctc_id::integer = mce.id
    WHERE mce.end_dt >= :start AND mce.end_dt < :end
    GROUP BY cmh.grade_nm
    ORDER BY cmh.grade_nm
""")

# ── Registrations ──

DAILY_USER_REGISTRATION = text("""
    SELECT COUNT(u.id) AS registration_count
    FROM users u
    WHERE u.reg_dt >= :start AND u.reg_dt < :end
""")

# ── Data quality ──

DUPLICATE_CARDS = text("""
    SELECT card_no, COUNT(*) AS count
    FROM user_cards
    GROUP BY card_no
    HAVING COUNT(*) >= 2
    ORDER BY count DESC
""")

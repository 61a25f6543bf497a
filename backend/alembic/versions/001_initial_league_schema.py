"""Initial league schema: clubs, competitions, seasons, matches, stats, discipline, predictions

Revision ID: 001_initial_league
Revises:
Create Date: 2026-03-01 00:00:00.000000

"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "001_initial_league"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Clubs and people
    op.create_table(
        "club",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("short_name", sa.String(), nullable=True),
        sa.Column("logo_url", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_club_name", "club", ["name"], unique=True)

    op.create_table(
        "person",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("first_name", sa.String(), nullable=False),
        sa.Column("last_name", sa.String(), nullable=False),
        sa.Column("is_player", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "clubplayer",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("club_id", sa.Integer(), nullable=False),
        sa.Column("person_id", sa.Integer(), nullable=False),
        sa.Column("default_shirt_number", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["club_id"], ["club.id"]),
        sa.ForeignKeyConstraint(["person_id"], ["person.id"]),
        sa.UniqueConstraint("club_id", "person_id", name="uq_club_player"),
    )
    op.create_index("ix_clubplayer_club_id", "clubplayer", ["club_id"])
    op.create_index("ix_clubplayer_person_id", "clubplayer", ["person_id"])

    # Competitions and seasons
    op.create_table(
        "competition",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("series_format", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "season",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("competition_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("series_format", sa.String(), nullable=True),
        sa.Column("start_date", sa.DateTime(), nullable=False),
        sa.Column("end_date", sa.DateTime(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("champion_club_id", sa.Integer(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["competition_id"], ["competition.id"]),
        sa.ForeignKeyConstraint(["champion_club_id"], ["club.id"]),
    )
    op.create_index("ix_season_competition_id", "season", ["competition_id"])

    op.create_table(
        "seasonparticipant",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("season_id", sa.Integer(), nullable=False),
        sa.Column("club_id", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["season_id"], ["season.id"]),
        sa.ForeignKeyConstraint(["club_id"], ["club.id"]),
        sa.UniqueConstraint("season_id", "club_id", name="uq_season_participant"),
    )
    op.create_index("ix_seasonparticipant_season_id", "seasonparticipant", ["season_id"])
    op.create_index("ix_seasonparticipant_club_id", "seasonparticipant", ["club_id"])

    op.create_table(
        "seasonrosterentry",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("season_id", sa.Integer(), nullable=False),
        sa.Column("club_id", sa.Integer(), nullable=False),
        sa.Column("person_id", sa.Integer(), nullable=False),
        sa.Column("shirt_number", sa.Integer(), nullable=False),
        sa.Column("registration_date", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["season_id"], ["season.id"]),
        sa.ForeignKeyConstraint(["club_id"], ["club.id"]),
        sa.ForeignKeyConstraint(["person_id"], ["person.id"]),
        sa.UniqueConstraint("season_id", "club_id", "person_id", name="uq_season_roster_person"),
        sa.UniqueConstraint("season_id", "club_id", "shirt_number", name="uq_season_roster_shirt"),
    )
    op.create_index("ix_seasonrosterentry_season_id", "seasonrosterentry", ["season_id"])

    op.create_table(
        "seasongroup",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("season_id", sa.Integer(), nullable=False),
        sa.Column("group_index", sa.Integer(), nullable=False),
        sa.Column("label", sa.String(), nullable=False),
        sa.Column("qualify_count", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["season_id"], ["season.id"]),
        sa.UniqueConstraint("season_id", "group_index", name="uq_season_group_index"),
    )
    op.create_index("ix_seasongroup_season_id", "seasongroup", ["season_id"])

    op.create_table(
        "seasongroupslot",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("group_id", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("club_id", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["group_id"], ["seasongroup.id"]),
        sa.ForeignKeyConstraint(["club_id"], ["club.id"]),
        sa.UniqueConstraint("group_id", "position", name="uq_group_slot_position"),
    )
    op.create_index("ix_seasongroupslot_group_id", "seasongroupslot", ["group_id"])

    op.create_table(
        "seasonround",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("season_id", sa.Integer(), nullable=False),
        sa.Column("round_type", sa.String(), nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=True),
        sa.Column("label", sa.String(), nullable=False),
        sa.Column("group_id", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["season_id"], ["season.id"]),
        sa.ForeignKeyConstraint(["group_id"], ["seasongroup.id"]),
        sa.UniqueConstraint("season_id", "label", name="uq_season_round_label"),
    )
    op.create_index("ix_seasonround_season_id", "seasonround", ["season_id"])

    # Series and matches
    op.create_table(
        "matchseries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("season_id", sa.Integer(), nullable=False),
        sa.Column("stage_name", sa.String(), nullable=False),
        sa.Column("home_club_id", sa.Integer(), nullable=False),
        sa.Column("away_club_id", sa.Integer(), nullable=False),
        sa.Column("home_seed", sa.Integer(), nullable=True),
        sa.Column("away_seed", sa.Integer(), nullable=True),
        sa.Column("bracket_slot", sa.Integer(), nullable=True),
        sa.Column("best_of", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("series_status", sa.String(), nullable=False, server_default="IN_PROGRESS"),
        sa.Column("winner_club_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["season_id"], ["season.id"]),
        sa.ForeignKeyConstraint(["home_club_id"], ["club.id"]),
        sa.ForeignKeyConstraint(["away_club_id"], ["club.id"]),
        sa.ForeignKeyConstraint(["winner_club_id"], ["club.id"]),
    )
    op.create_index("ix_matchseries_season_id", "matchseries", ["season_id"])
    op.create_index("ix_matchseries_stage_name", "matchseries", ["stage_name"])

    op.create_table(
        "match",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("season_id", sa.Integer(), nullable=False),
        sa.Column("match_datetime", sa.DateTime(), nullable=False),
        sa.Column("home_club_id", sa.Integer(), nullable=False),
        sa.Column("away_club_id", sa.Integer(), nullable=False),
        sa.Column("home_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("away_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("has_penalty_shootout", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("penalty_home_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("penalty_away_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(), nullable=False, server_default="SCHEDULED"),
        sa.Column("series_id", sa.Integer(), nullable=True),
        sa.Column("series_match_number", sa.Integer(), nullable=True),
        sa.Column("round_id", sa.Integer(), nullable=True),
        sa.Column("group_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["season_id"], ["season.id"]),
        sa.ForeignKeyConstraint(["home_club_id"], ["club.id"]),
        sa.ForeignKeyConstraint(["away_club_id"], ["club.id"]),
        sa.ForeignKeyConstraint(["series_id"], ["matchseries.id"]),
        sa.ForeignKeyConstraint(["round_id"], ["seasonround.id"]),
        sa.ForeignKeyConstraint(["group_id"], ["seasongroup.id"]),
        sa.UniqueConstraint("series_id", "series_match_number", name="uq_series_match_number"),
    )
    op.create_index("ix_match_season_id", "match", ["season_id"])
    op.create_index("ix_match_match_datetime", "match", ["match_datetime"])
    op.create_index("ix_match_series_id", "match", ["series_id"])

    op.create_table(
        "matchevent",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("match_id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("related_player_id", sa.Integer(), nullable=True),
        sa.Column("club_id", sa.Integer(), nullable=False),
        sa.Column("minute", sa.Integer(), nullable=False),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["match_id"], ["match.id"]),
        sa.ForeignKeyConstraint(["player_id"], ["person.id"]),
        sa.ForeignKeyConstraint(["related_player_id"], ["person.id"]),
        sa.ForeignKeyConstraint(["club_id"], ["club.id"]),
    )
    op.create_index("ix_matchevent_match_id", "matchevent", ["match_id"])

    op.create_table(
        "matchlineup",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("match_id", sa.Integer(), nullable=False),
        sa.Column("person_id", sa.Integer(), nullable=False),
        sa.Column("club_id", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["match_id"], ["match.id"]),
        sa.ForeignKeyConstraint(["person_id"], ["person.id"]),
        sa.ForeignKeyConstraint(["club_id"], ["club.id"]),
        sa.UniqueConstraint("match_id", "person_id", name="uq_match_lineup_person"),
    )
    op.create_index("ix_matchlineup_match_id", "matchlineup", ["match_id"])

    # Derived stats
    op.create_table(
        "clubseasonstats",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("season_id", sa.Integer(), nullable=False),
        sa.Column("club_id", sa.Integer(), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("wins", sa.Integer(), nullable=False),
        sa.Column("draws", sa.Integer(), nullable=False),
        sa.Column("losses", sa.Integer(), nullable=False),
        sa.Column("goals_for", sa.Integer(), nullable=False),
        sa.Column("goals_against", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["season_id"], ["season.id"]),
        sa.ForeignKeyConstraint(["club_id"], ["club.id"]),
        sa.UniqueConstraint("season_id", "club_id", name="uq_club_season_stats"),
    )
    op.create_index("ix_clubseasonstats_season_id", "clubseasonstats", ["season_id"])

    op.create_table(
        "playerseasonstats",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("season_id", sa.Integer(), nullable=False),
        sa.Column("person_id", sa.Integer(), nullable=False),
        sa.Column("club_id", sa.Integer(), nullable=False),
        sa.Column("goals", sa.Integer(), nullable=False),
        sa.Column("penalty_goals", sa.Integer(), nullable=False),
        sa.Column("assists", sa.Integer(), nullable=False),
        sa.Column("yellow_cards", sa.Integer(), nullable=False),
        sa.Column("red_cards", sa.Integer(), nullable=False),
        sa.Column("matches_played", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["season_id"], ["season.id"]),
        sa.ForeignKeyConstraint(["person_id"], ["person.id"]),
        sa.ForeignKeyConstraint(["club_id"], ["club.id"]),
        sa.UniqueConstraint("season_id", "person_id", name="uq_player_season_stats"),
    )
    op.create_index("ix_playerseasonstats_season_id", "playerseasonstats", ["season_id"])

    op.create_table(
        "playerclubcareerstats",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("person_id", sa.Integer(), nullable=False),
        sa.Column("club_id", sa.Integer(), nullable=False),
        sa.Column("total_goals", sa.Integer(), nullable=False),
        sa.Column("penalty_goals", sa.Integer(), nullable=False),
        sa.Column("total_assists", sa.Integer(), nullable=False),
        sa.Column("yellow_cards", sa.Integer(), nullable=False),
        sa.Column("red_cards", sa.Integer(), nullable=False),
        sa.Column("total_matches", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["person_id"], ["person.id"]),
        sa.ForeignKeyConstraint(["club_id"], ["club.id"]),
        sa.UniqueConstraint("person_id", "club_id", name="uq_player_club_career"),
    )
    op.create_index("ix_playerclubcareerstats_club_id", "playerclubcareerstats", ["club_id"])

    # Discipline
    op.create_table(
        "disqualification",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("person_id", sa.Integer(), nullable=False),
        sa.Column("club_id", sa.Integer(), nullable=True),
        sa.Column("season_id", sa.Integer(), nullable=True),
        sa.Column("match_id", sa.Integer(), nullable=True),
        sa.Column("reason", sa.String(), nullable=False),
        sa.Column("sanction_date", sa.DateTime(), nullable=False),
        sa.Column("ban_duration_matches", sa.Integer(), nullable=False),
        sa.Column("matches_missed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["person_id"], ["person.id"]),
        sa.ForeignKeyConstraint(["club_id"], ["club.id"]),
        sa.ForeignKeyConstraint(["season_id"], ["season.id"]),
        sa.ForeignKeyConstraint(["match_id"], ["match.id"]),
    )
    op.create_index("ix_disqualification_person_id", "disqualification", ["person_id"])
    op.create_index("ix_disqualification_club_id", "disqualification", ["club_id"])
    op.create_index("ix_disqualification_is_active", "disqualification", ["is_active"])

    op.create_table(
        "disqualificationservedmatch",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("disqualification_id", sa.Integer(), nullable=False),
        sa.Column("match_id", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["disqualification_id"], ["disqualification.id"]),
        sa.ForeignKeyConstraint(["match_id"], ["match.id"]),
        sa.UniqueConstraint("disqualification_id", "match_id", name="uq_disqualification_served_match"),
    )
    op.create_index(
        "ix_disqualificationservedmatch_disqualification_id",
        "disqualificationservedmatch",
        ["disqualification_id"],
    )

    # Predictions
    op.create_table(
        "appuser",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("username", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_appuser_username", "appuser", ["username"], unique=True)

    op.create_table(
        "prediction",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("match_id", sa.Integer(), nullable=False),
        sa.Column("result_1x2", sa.String(), nullable=True),
        sa.Column("is_correct", sa.Boolean(), nullable=True),
        sa.Column("points_awarded", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["appuser.id"]),
        sa.ForeignKeyConstraint(["match_id"], ["match.id"]),
        sa.UniqueConstraint("user_id", "match_id", name="uq_prediction_user_match"),
    )
    op.create_index("ix_prediction_user_id", "prediction", ["user_id"])
    op.create_index("ix_prediction_match_id", "prediction", ["match_id"])

    op.create_table(
        "achievementtype",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("metric", sa.String(), nullable=False),
        sa.Column("required_value", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "userachievement",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("achievement_type_id", sa.Integer(), nullable=False),
        sa.Column("achieved_date", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["appuser.id"]),
        sa.ForeignKeyConstraint(["achievement_type_id"], ["achievementtype.id"]),
        sa.UniqueConstraint("user_id", "achievement_type_id", name="uq_user_achievement"),
    )
    op.create_index("ix_userachievement_user_id", "userachievement", ["user_id"])


def downgrade() -> None:
    op.drop_table("userachievement")
    op.drop_table("achievementtype")
    op.drop_table("prediction")
    op.drop_table("appuser")
    op.drop_table("disqualificationservedmatch")
    op.drop_table("disqualification")
    op.drop_table("playerclubcareerstats")
    op.drop_table("playerseasonstats")
    op.drop_table("clubseasonstats")
    op.drop_table("matchlineup")
    op.drop_table("matchevent")
    op.drop_table("match")
    op.drop_table("matchseries")
    op.drop_table("seasonround")
    op.drop_table("seasongroupslot")
    op.drop_table("seasongroup")
    op.drop_table("seasonrosterentry")
    op.drop_table("seasonparticipant")
    op.drop_table("season")
    op.drop_table("competition")
    op.drop_table("clubplayer")
    op.drop_table("person")
    op.drop_table("club")

from sqlalchemy import Boolean, Column, Float, ForeignKey, Index, Integer, String, UniqueConstraint, text

from .database import Base


class UserAccount(Base):
    __tablename__ = "user_account"

    id = Column(String, primary_key=True)
    email = Column(String, nullable=True, unique=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    age = Column(Integer, nullable=False)
    gender = Column(Integer, nullable=False)
    status = Column(Integer, nullable=False, default=0)
    self_romance = Column(Integer, nullable=True)
    self_openness = Column(Integer, nullable=True)
    self_warmheartedness = Column(Integer, nullable=True)
    pref_gender = Column(Integer, nullable=True)
    pref_min_age = Column(Integer, nullable=True)
    pref_max_age = Column(Integer, nullable=True)
    pref_romance = Column(Integer, nullable=True)
    pref_openness = Column(Integer, nullable=True)
    pref_warmheartedness = Column(Integer, nullable=True)

    __table_args__ = (
        Index("idx_user_account_status_gender", "status", "gender", "pref_gender"),
    )


class UserMatch(Base):
    __tablename__ = "user_match"

    id = Column(String, primary_key=True)
    user_a = Column(String, ForeignKey("user_account.id"), nullable=False)
    user_b = Column(String, ForeignKey("user_account.id"), nullable=False)
    # UTC epoch seconds
    created_at = Column(Float, nullable=False)
    active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index("idx_user_match_active", "active"),
        Index("idx_user_match_user_a", "user_a"),
        Index("idx_user_match_user_b", "user_b"),
    )


class MatchProposal(Base):
    __tablename__ = "match_proposal"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(String, ForeignKey("user_match.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False)
    proposed_by = Column(Integer, nullable=False)
    proposed_at = Column(Float, nullable=False)
    location = Column(String, nullable=False)
    agreed = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint("match_id", "position", name="uq_match_proposal_position"),
        Index("idx_match_proposal_match_id", "match_id"),
        Index(
            "uq_match_proposal_agreed",
            "match_id",
            unique=True,
            postgresql_where=text("agreed"),
            sqlite_where=text("agreed"),
        ),
    )

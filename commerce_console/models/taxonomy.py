"""
Taxonomy model

One row per category node. The hierarchy is stored flattened across five
columns (DEPT, TYP, SUBTYP_1..3); unused levels hold the EMPTY sentinel.
Column names match the legacy table so existing data loads unchanged.
"""
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, Text, DateTime, Index

from commerce_console.core.database import Base

EMPTY = "EMPTY"


class Taxonomy(Base):
    __tablename__ = "taxonomy"

    id = Column("WEB_TAXONOMY_ID", Integer, primary_key=True, autoincrement=True)

    # Hierarchy (DEPT -> TYP -> SUBTYP_1 -> SUBTYP_2 -> SUBTYP_3)
    dept = Column("DEPT", Text, nullable=False)
    typ = Column("TYP", Text, nullable=False, default=EMPTY, server_default=EMPTY)
    subtyp_1 = Column("SUBTYP_1", Text, nullable=False, default=EMPTY, server_default=EMPTY)
    subtyp_2 = Column("SUBTYP_2", Text, nullable=False, default=EMPTY, server_default=EMPTY)
    subtyp_3 = Column("SUBTYP_3", Text, nullable=False, default=EMPTY, server_default=EMPTY)

    # Storefront routing slug, derived from the parent's URL at save time
    web_url = Column("WEB_URL", Text, nullable=False)

    sort_position = Column("SORT_POSITION", Text)
    short_desc = Column("SHORT_DESC", Text)
    long_description = Column("LONG_DESCRIPTION", Text)
    meta_tags = Column("META_TAGS", Text)
    category_style = Column("CATEGORY_STYLE", Text)

    active = Column("ACTIVE", Integer, nullable=False, default=1)  # 1/0 in legacy data
    site = Column("SITE", Integer, nullable=False, default=1)

    # Date last updated
    dlu = Column(
        "DLU",
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("ix_taxonomy_web_url", "WEB_URL"),
        Index("ix_taxonomy_hierarchy", "DEPT", "TYP", "SUBTYP_1", "SUBTYP_2", "SUBTYP_3"),
    )

    @property
    def hierarchy(self) -> tuple:
        return (self.dept, self.typ, self.subtyp_1, self.subtyp_2, self.subtyp_3)

    def __repr__(self) -> str:
        return f"<Taxonomy {self.id} {self.web_url!r}>"

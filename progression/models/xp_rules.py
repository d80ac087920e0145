"""XP rule table models"""
from typing import Optional
from pydantic import BaseModel, Field


class XpRule(BaseModel):
    """One row of the XP rule table"""
    activity_type: str
    base_xp: int = Field(ge=0)
    multiplier_field: Optional[str] = None
    is_active: bool = True
    description: str = ""

    model_config = {"frozen": True}


class XpRuleTable(BaseModel):
    """
    Versioned, immutable set of XP rules

    Passed explicitly into the XP calculator; changing a rule produces a new
    table with a higher version instead of mutating shared state.
    """
    version: int = Field(default=1, ge=1)
    rules: dict[str, XpRule] = Field(default_factory=dict)

    model_config = {"frozen": True}

    def get_active(self, activity_type: str) -> Optional[XpRule]:
        """Return the rule if present and active, else None"""
        rule = self.rules.get(activity_type)
        if rule is None or not rule.is_active:
            return None
        return rule

    def with_rule(self, rule: XpRule) -> "XpRuleTable":
        """Copy of this table with rule added or replaced"""
        rules = dict(self.rules)
        rules[rule.activity_type] = rule
        return XpRuleTable(version=self.version + 1, rules=rules)

    @classmethod
    def from_rows(cls, rows: list[dict], version: int = 1) -> "XpRuleTable":
        """Build a table from storage rows (e.g. an xp_activities query)"""
        rules = {row["activity_type"]: XpRule(**row) for row in rows}
        return cls(version=version, rules=rules)

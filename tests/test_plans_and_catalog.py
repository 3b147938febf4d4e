"""Plan table and workflow catalog tests."""

import pytest

from clixen.models.profile import Tier
from clixen.services.plans import plan_for_amount, plan_for_tier
from clixen.services.workflow_catalog import get_workflow, workflows_for_tier


class TestPlans:

    @pytest.mark.parametrize("amount,tier,credits", [
        (900, Tier.STARTER, 100),
        (2900, Tier.PRO, 500),
        (9900, Tier.ENTERPRISE, 2000),
    ])
    def test_amount_mapping(self, amount, tier, credits):
        plan = plan_for_amount(amount)

        assert plan.tier is tier
        assert plan.credits == credits

    @pytest.mark.parametrize("amount", [None, 0, 4999, "abc"])
    def test_unknown_amount_defaults_to_pro(self, amount):
        assert plan_for_amount(amount).tier is Tier.PRO

    @pytest.mark.parametrize("value,expected", [
        ("plan_starter", Tier.STARTER),
        ("PRO", Tier.PRO),
        (Tier.ENTERPRISE, Tier.ENTERPRISE),
    ])
    def test_plan_for_tier(self, value, expected):
        assert plan_for_tier(value).tier is expected

    @pytest.mark.parametrize("value", [None, "free", "gold"])
    def test_plan_for_tier_without_paid_plan(self, value):
        assert plan_for_tier(value) is None


class TestWorkflowCatalog:

    def test_free_tier_workflows(self):
        keys = {w.key for w in workflows_for_tier(Tier.FREE)}

        assert keys == {"weather", "translate"}

    def test_starter_unlocks_everything(self):
        assert len(workflows_for_tier(Tier.STARTER)) == 5

    def test_lookup_is_normalized(self):
        assert get_workflow(" Weather ").key == "weather"
        assert get_workflow("unknown") is None
        assert get_workflow(None) is None

    def test_credit_costs(self):
        assert get_workflow("email_scanner").credit_cost == 3
        assert get_workflow("pdf_summary").credit_cost == 2

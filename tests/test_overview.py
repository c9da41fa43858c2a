"""Home-page panels over projects, subscriptions and proposals."""

from datetime import datetime
from datetime import timedelta
from types import SimpleNamespace

from devdeck.models.enums import BillingCycle
from devdeck.models.enums import TaskStatus
from devdeck.services import overview

NOW = datetime(2025, 3, 1, 12, 0, 0)

_ids = iter(range(1, 10_000))


def make_service(name, price, billing_cycle=BillingCycle.MONTHLY, **overrides):
    values = dict(
        id=next(_ids),
        name=name,
        price=price,
        billing_cycle=billing_cycle,
        status="active",
        auto_renew=True,
        remind_before_renew=False,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def make_proposal(proposal_id, status="draft", estimated_price=None, deadline=None):
    return SimpleNamespace(
        id=proposal_id,
        title=f"Proposal {proposal_id}",
        customer_name="Acme",
        status=status,
        estimated_price=estimated_price,
        deadline=deadline,
    )


def make_task(task_id, due_date=None, status=TaskStatus.TODO):
    return SimpleNamespace(
        id=task_id,
        project_id=1,
        project=SimpleNamespace(id=1, name="Alpha"),
        title=f"Task {task_id}",
        status=status,
        due_date=due_date,
        updated_at=NOW,
    )


def test_project_stats():
    projects = [SimpleNamespace(status=s) for s in ("active", "active", "in-development", "archived")]

    assert overview.project_stats(projects) == {"total": 4, "active": 2, "in_development": 1}


def test_monthly_cost_by_billing_cycle():
    assert overview.monthly_cost(make_service("a", 20)) == 20
    assert overview.monthly_cost(make_service("b", 120, BillingCycle.YEARLY)) == 10
    assert overview.monthly_cost(make_service("c", 300, BillingCycle.ONE_TIME)) == 0
    # Rows read straight from the database carry the plain string
    assert overview.monthly_cost(make_service("d", 60, "yearly")) == 5


def test_monthly_spend_counts_active_services_only():
    services = [
        make_service("Vercel", 20),
        make_service("Domain", 24, BillingCycle.YEARLY),
        make_service("Heroku", 50, status="cancelled"),
    ]

    assert overview.monthly_spend(services) == 22
    assert overview.monthly_spend([]) == 0


def test_renewal_alerts_need_auto_renew_reminder_and_active():
    wanted = make_service("Figma", 15, remind_before_renew=True)
    services = [
        wanted,
        make_service("Manual", 15, auto_renew=False, remind_before_renew=True),
        make_service("Quiet", 15),
        make_service("Paused", 15, remind_before_renew=True, status="paused"),
    ]

    assert overview.renewal_alerts(services) == [wanted]


def test_top_services_ranked_by_monthly_cost():
    services = [
        make_service("Cheap", 5),
        make_service("Yearly", 600, BillingCycle.YEARLY),
        make_service("Mid", 30),
        make_service("Big", 80),
        make_service("Gone", 500, status="cancelled"),
    ]

    top = overview.top_services(services)

    assert [row["name"] for row in top] == ["Big", "Yearly", "Mid"]
    assert top[1]["monthly_cost"] == 50


def test_proposal_stats():
    proposals = [
        make_proposal(1, "draft", 1000),
        make_proposal(2, "sent", 2000),
        make_proposal(3, "accepted", 5000),
        make_proposal(4, "accepted", None),
        make_proposal(5, "in-progress", 3000),
        make_proposal(6, "rejected", 9000),
    ]

    assert overview.proposal_stats(proposals) == {
        "pending": 2,
        "accepted": 2,
        "in_progress": 1,
        "pipeline_value": 6000,
        "won_revenue": 5000,
    }


def test_deadlines_merge_tasks_and_open_proposals():
    tasks = [
        make_task(1, due_date=NOW + timedelta(days=5)),
        make_task(2, due_date=NOW - timedelta(days=1)),
        make_task(3, due_date=NOW + timedelta(days=1), status=TaskStatus.DONE),
    ]
    proposals = [
        make_proposal(1, "sent", deadline=NOW + timedelta(days=2)),
        make_proposal(2, "rejected", deadline=NOW + timedelta(days=3)),
        make_proposal(3, "draft"),
    ]

    items = overview.deadlines(tasks, proposals, NOW)

    assert [(d["kind"], d["id"]) for d in items] == [("proposal", 1), ("task", 1)]
    assert items[0]["context"] == "Acme"
    assert items[1]["context"] == "Alpha"


def test_deadlines_are_capped():
    tasks = [make_task(i, due_date=NOW + timedelta(days=i)) for i in range(1, 12)]

    assert len(overview.deadlines(tasks, [], NOW)) == 8


def test_dashboard_overview_keeps_task_widgets():
    tasks = [make_task(1, status=TaskStatus.BLOCKED)]

    result = overview.dashboard_overview([], tasks, [make_service("Vercel", 20)], [], NOW)

    assert result["stats"]["blocked"] == 1
    assert [t.id for t in result["urgent"]] == [1]
    assert result["monthly_spend"] == 20
    assert result["projects"]["total"] == 0

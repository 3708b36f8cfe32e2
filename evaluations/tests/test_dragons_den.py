import pytest
from django.contrib.auth import get_user_model
from django.urls import reverse

from applications.models import Application, ApplicationStatusHistory
from evaluations import dragons_den
from evaluations.services import AssignmentError
from scoring import logic

pytestmark = pytest.mark.django_db

User = get_user_model()


@pytest.fixture
def pitch(simple_config):
    return simple_config.criteria.get(name="Pitch Delivery")


def test_judge_scores_a_finalist(client_for, judge, make_application, pitch):
    app = make_application(status="dragons_den")
    client = client_for(judge)

    resp = client.post(reverse("dd-scores", args=[app.id]), {
        "scores": [{"criterion_id": pitch.id, "score": 8, "comments": "Confident delivery"}],
    }, format="json")
    assert resp.status_code == 200, resp.content
    assert resp.json()["updated"] == 1

    criteria = client.get(reverse("dd-criteria", args=[app.id])).json()
    assert criteria == [{
        "criterion": {
            "id": pitch.id, "name": "Pitch Delivery", "description": "", "max_points": 10,
            "category": "Presentation", "scoring_levels": [],
        },
        "score": 8,
        "comments": "Confident delivery",
    }]

    listing = client.get(reverse("dd-applications")).json()
    assert listing[0]["dragons_den_score"] == 8
    assert listing[0]["is_evaluated"] is True
    assert listing[0]["max_dragons_den_score"] == 10


def test_presentation_scores_do_not_change_eligibility(judge, make_application, pitch):
    app = make_application(status="dragons_den")
    before = logic.eligibility_check(app).total_score

    dragons_den.update_dragons_den_scores(judge, app.id, [{"criterion_id": pitch.id, "score": 10}])
    assert logic.eligibility_check(app).total_score == before


def test_judge_cannot_score_outside_dragons_den(judge, make_application, pitch):
    app = make_application(status="scoring_phase")
    with pytest.raises(AssignmentError, match="not in Dragon's Den phase"):
        dragons_den.update_dragons_den_scores(judge, app.id, [{"criterion_id": pitch.id, "score": 5}])


def test_presentation_score_bounds(judge, make_application, pitch):
    app = make_application(status="dragons_den")
    with pytest.raises(AssignmentError, match=r"out of bounds \(0-10\)"):
        dragons_den.update_dragons_den_scores(judge, app.id, [{"criterion_id": pitch.id, "score": 11}])


def test_non_presentation_criterion_is_rejected(judge, make_application, simple_config):
    app = make_application(status="dragons_den")
    viability = simple_config.criteria.get(name="Viability")
    with pytest.raises(AssignmentError, match="not a presentation criterion"):
        dragons_den.update_dragons_den_scores(judge, app.id, [{"criterion_id": viability.id, "score": 5}])


def test_stats_are_per_judge(judge, make_application, pitch):
    a1 = make_application(status="dragons_den")
    a2 = make_application(status="dragons_den")
    make_application(status="dragons_den")
    other = User.objects.create_user(email="judge2@example.com", password="x" * 10, role=User.Role.DRAGONS_DEN_JUDGE)

    dragons_den.update_dragons_den_scores(judge, a1.id, [{"criterion_id": pitch.id, "score": 6}])
    dragons_den.update_dragons_den_scores(judge, a2.id, [{"criterion_id": pitch.id, "score": 9}])
    dragons_den.update_dragons_den_scores(other, a1.id, [{"criterion_id": pitch.id, "score": 2}])

    stats = dragons_den.dragons_den_stats(judge)
    assert stats == {"total_finalists": 3, "evaluated": 2, "average_score": 7.5, "max_score": 10, "top_score": 9}


def test_leaderboard_ranks_by_presentation_total(admin_client, judge, make_application, pitch):
    a1 = make_application(status="dragons_den")
    a2 = make_application(status="dragons_den")
    other = User.objects.create_user(email="judge2@example.com", password="x" * 10, role=User.Role.DRAGONS_DEN_JUDGE)

    dragons_den.update_dragons_den_scores(judge, a1.id, [{"criterion_id": pitch.id, "score": 7}])
    dragons_den.update_dragons_den_scores(judge, a2.id, [{"criterion_id": pitch.id, "score": 6}])
    dragons_den.update_dragons_den_scores(other, a2.id, [{"criterion_id": pitch.id, "score": 8}])

    resp = admin_client.get(reverse("dd-leaderboard"))
    assert resp.status_code == 200
    board = resp.json()
    assert [(r["rank"], r["application_id"]) for r in board] == [(1, a2.id), (2, a1.id)]
    assert board[0]["presentation_score"] == 14
    assert board[0]["max_presentation_score"] == 20
    assert board[0]["percentage"] == 70
    assert board[1]["evaluation_count"] == 1


def test_select_winners_approves_and_rejects_the_rest(admin_client, make_application, mailoutbox,
                                                      django_capture_on_commit_callbacks):
    winner = make_application(status="dragons_den")
    loser = make_application(status="dragons_den")
    bystander = make_application(status="scoring_phase")

    with django_capture_on_commit_callbacks(execute=True):
        resp = admin_client.post(reverse("admin-select-winners"), {"application_ids": [winner.id]}, format="json")

    assert resp.status_code == 200, resp.content
    assert resp.json()["message"] == "Selected 1 winners. 1 applications moved to rejected."
    statuses = dict(Application.objects.values_list("id", "status"))
    assert statuses == {winner.id: "approved", loser.id: "rejected", bystander.id: "scoring_phase"}
    assert ApplicationStatusHistory.objects.filter(application=winner, to_status="approved").exists()
    assert len(mailoutbox) == 2


def test_select_winners_with_unknown_id_changes_nothing(make_application):
    app = make_application(status="dragons_den")
    with pytest.raises(AssignmentError, match="not found"):
        dragons_den.select_winners([app.id, 9999])
    app.refresh_from_db()
    assert app.status == "dragons_den"


def test_dragons_den_endpoints_are_judge_only(client_for, reviewer):
    assert client_for(reviewer).get(reverse("dd-applications")).status_code == 403

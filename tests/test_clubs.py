import pytest
from fastapi import HTTPException
from app.modules.clubs.service import ClubService, validate_open_hours


@pytest.fixture
def supabase(make_supabase):
    return make_supabase({"clubs": [
        {"id": "gym-a", "name": "Iron Works", "city": "Stockholm", "type": "gym", "avg_rating": 4.1},
        {"id": "gym-b", "name": "Yoga Loft", "city": "Stockholm", "type": "yoga", "avg_rating": 4.8},
        {"id": "gym-c", "name": "Iron Temple", "city": "Göteborg", "type": "gym", "avg_rating": 3.9},
    ]})


def test_validate_open_hours():
    assert validate_open_hours({"monday": "06:00-22:00", "sunday": "closed"}) == []
    errors = validate_open_hours({"monday": "22:00-06:00", "funday": "closed", "tuesday": "6-22"})
    assert len(errors) == 3
    assert any("closing time must be after opening time" in e for e in errors)
    assert "Unknown weekday: funday" in errors


def test_discover_filters_and_orders_by_rating(supabase):
    service = ClubService(supabase)
    assert [c.id for c in service.discover_clubs(city="stockholm")] == ["gym-b", "gym-a"]
    assert [c.id for c in service.discover_clubs(search="iron")] == ["gym-a", "gym-c"]
    assert [c.id for c in service.discover_clubs(club_type="yoga")] == ["gym-b"]
    assert [c.id for c in service.discover_clubs(limit=1, offset=1)] == ["gym-a"]


def test_set_open_hours_normalizes_and_rejects_bad_input(supabase):
    service = ClubService(supabase)
    club = service.set_open_hours("gym-a", {"Monday": "06:00-22:00", "Sunday": " Closed "})
    assert club.open_hours == {"monday": "06:00-22:00", "sunday": "closed"}

    with pytest.raises(HTTPException) as exc:
        service.set_open_hours("gym-a", {"monday": "25:00-26:00"})
    assert exc.value.status_code == 400


def test_reposting_review_updates_it_and_recomputes_rating(supabase):
    service = ClubService(supabase)
    service.add_review("u1", "gym-a", 5, "Great")
    service.add_review("u2", "gym-a", 2, None)
    assert supabase.rows("clubs")[0]["avg_rating"] == 3.5

    updated = service.add_review("u2", "gym-a", 4, "Better now")
    assert updated.rating == 4
    assert len(supabase.rows("reviews")) == 2
    assert supabase.rows("clubs")[0]["avg_rating"] == 4.5

    service.delete_review("u1", "gym-a")
    assert supabase.rows("clubs")[0]["avg_rating"] == 4
    with pytest.raises(HTTPException) as exc:
        service.delete_review("u1", "gym-a")
    assert exc.value.status_code == 404


def test_favorites_are_unique_per_club(supabase):
    service = ClubService(supabase)
    service.add_favorite("u1", "gym-a")
    service.add_favorite("u1", "gym-a")
    assert len(supabase.rows("favorites")) == 1
    service.remove_favorite("u1", "gym-a")
    assert supabase.rows("favorites") == []

    with pytest.raises(HTTPException) as exc:
        service.add_favorite("u1", "missing")
    assert exc.value.status_code == 404

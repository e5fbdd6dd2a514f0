from prolance.auth.models import User, UserRole


def rate(client, rater, freelancer_id, rating, review="Great work"):
    return client.post("/api/ratings", json={"freelancer_id": freelancer_id, "rating": rating, "review": review},
                       headers=rater.headers)


def test_rating_updates_freelancer_average(client, market, db):
    freelancer = market.user(UserRole.FREELANCER)
    first = market.user(UserRole.CLIENT, name="First Client")
    second = market.user(UserRole.CLIENT)

    response = rate(client, first, freelancer.id, 5)
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Rating submitted successfully"
    assert body["rating"]["client"]["name"] == "First Client"

    rate(client, second, freelancer.id, 4)
    user = db.get(User, freelancer.id)
    assert user.rating == 4.5
    assert user.total_reviews == 2


def test_rating_again_updates_existing(client, market, db):
    freelancer = market.user(UserRole.FREELANCER)
    rater = market.user(UserRole.CLIENT)
    rate(client, rater, freelancer.id, 2)

    response = rate(client, rater, freelancer.id, 4, review="Improved a lot")
    assert response.json()["message"] == "Rating updated successfully"
    assert response.json()["rating"]["review"] == "Improved a lot"

    user = db.get(User, freelancer.id)
    assert user.rating == 4.0
    assert user.total_reviews == 1

    ratings = client.get(f"/api/ratings/freelancer/{freelancer.id}").json()["ratings"]
    assert len(ratings) == 1


def test_rating_validation(client, market):
    freelancer = market.user(UserRole.FREELANCER)
    rater = market.user(UserRole.CLIENT)

    response = rate(client, rater, freelancer.id, 6)
    assert response.status_code == 400
    assert response.json()["message"] == "Rating must be between 1 and 5"

    assert rate(client, rater, 999, 4).status_code == 404
    response = rate(client, freelancer, freelancer.id, 5)
    assert response.status_code == 400
    assert response.json()["message"] == "You cannot rate yourself"


def test_check_rating(client, market):
    freelancer = market.user(UserRole.FREELANCER)
    rater = market.user(UserRole.CLIENT)

    response = client.get(f"/api/ratings/check/{freelancer.id}", headers=rater.headers)
    assert response.json()["has_rated"] is False

    rate(client, rater, freelancer.id, 3)
    response = client.get(f"/api/ratings/check/{freelancer.id}", headers=rater.headers)
    assert response.json()["has_rated"] is True
    assert response.json()["rating"]["rating"] == 3

from django.urls import path

from . import views

app_name = "library"

urlpatterns = [
    path("games", views.game_list, name="game_list"),
    path("games/reindex", views.reindex_games, name="reindex"),
    path("games/random", views.game_random, name="game_random"),
    path("games/<int:pk>", views.game_detail, name="game_detail"),
    path("games/<int:pk>/download", views.download_game, name="download_game"),
    path("index-jobs", views.index_jobs, name="index_jobs"),
]

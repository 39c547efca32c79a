from django.contrib import admin

from .models import Game, IndexJob


@admin.register(Game)
class GameAdmin(admin.ModelAdmin):
    list_display = ["title", "version", "size", "file_path", "created_at", "deleted_at"]
    list_filter = ["early_access", "deleted_at"]
    search_fields = ["title", "file_path", "checksum"]
    readonly_fields = ["checksum", "size", "created_at", "updated_at"]

    def get_queryset(self, request):
        # Soft-deleted games stay visible in the admin
        return Game.all_objects.all()


@admin.register(IndexJob)
class IndexJobAdmin(admin.ModelAdmin):
    list_display = [
        "pk",
        "trigger",
        "status",
        "created",
        "renamed",
        "revived",
        "deleted",
        "started_at",
        "completed_at",
    ]
    list_filter = ["status", "trigger"]
    readonly_fields = [
        "failures",
        "conflicts",
        "store_errors",
        "started_at",
        "completed_at",
    ]

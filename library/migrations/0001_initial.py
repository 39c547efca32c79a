from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Game",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("title", models.CharField(max_length=255)),
                ("file_path", models.CharField(max_length=1024)),
                ("checksum", models.CharField(db_index=True, max_length=40)),
                ("size", models.BigIntegerField(default=0)),
                ("version", models.CharField(blank=True, max_length=50)),
                ("release_year", models.IntegerField(blank=True, null=True)),
                ("early_access", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "deleted_at",
                    models.DateTimeField(blank=True, db_index=True, null=True),
                ),
            ],
            options={
                "ordering": ["title", "id"],
            },
        ),
        migrations.CreateModel(
            name="IndexJob",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("task_id", models.CharField(blank=True, max_length=64)),
                (
                    "trigger",
                    models.CharField(
                        choices=[
                            ("api", "API request"),
                            ("command", "Management command"),
                            ("schedule", "Scheduled"),
                        ],
                        default="api",
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("running", "Running"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("roots", models.JSONField(default=list)),
                ("files_seen", models.IntegerField(default=0)),
                ("created", models.IntegerField(default=0)),
                ("revived", models.IntegerField(default=0)),
                ("renamed", models.IntegerField(default=0)),
                ("deleted", models.IntegerField(default=0)),
                ("unchanged", models.IntegerField(default=0)),
                ("failures", models.JSONField(default=list)),
                ("conflicts", models.JSONField(default=list)),
                ("store_errors", models.JSONField(default=list)),
                ("started_at", models.DateTimeField(auto_now_add=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "ordering": ["-started_at", "-id"],
            },
        ),
        migrations.AddConstraint(
            model_name="game",
            constraint=models.UniqueConstraint(
                condition=models.Q(("deleted_at__isnull", True)),
                fields=("checksum",),
                name="unique_live_game_checksum",
            ),
        ),
    ]

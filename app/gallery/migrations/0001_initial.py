import django.db.models.deletion
from django.db import migrations, models

import gallery.models.album


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Album",
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
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "name",
                    models.CharField(
                        help_text="Display name of the album", max_length=200
                    ),
                ),
                (
                    "slug",
                    models.SlugField(
                        help_text="URL slug, also used to name the album's storage directory",
                        max_length=100,
                        unique=True,
                    ),
                ),
                (
                    "is_public",
                    models.BooleanField(
                        db_index=True,
                        default=False,
                        help_text="Public albums can be viewed without a share key",
                    ),
                ),
                (
                    "share_key",
                    models.CharField(
                        default=gallery.models.album.generate_share_key,
                        help_text="Secret key for sharing a private album",
                        max_length=64,
                        unique=True,
                    ),
                ),
            ],
            options={
                "verbose_name": "album",
                "verbose_name_plural": "albums",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="MediaItem",
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
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "filename",
                    models.CharField(
                        help_text="Sanitized filename on disk", max_length=255
                    ),
                ),
                (
                    "title",
                    models.CharField(
                        blank=True, help_text="Display title", max_length=255
                    ),
                ),
                (
                    "album",
                    models.ForeignKey(
                        help_text="Album this photo belongs to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="gallery.album",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.AddConstraint(
            model_name="mediaitem",
            constraint=models.UniqueConstraint(
                fields=("album", "filename"),
                name="unique_media_item_filename_per_album",
            ),
        ),
        migrations.AddField(
            model_name="album",
            name="thumbnail",
            field=models.ForeignKey(
                blank=True,
                help_text="Media item used as the album cover",
                null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name="+",
                to="gallery.mediaitem",
            ),
        ),
    ]

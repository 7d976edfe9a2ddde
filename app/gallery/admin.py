"""Django admin configuration for gallery app."""

from django.contrib import admin

from gallery.models import Album, MediaItem


class MediaItemInline(admin.TabularInline):
    """Read-only listing of an album's committed photos."""

    model = MediaItem
    fields = ["filename", "title", "created_at"]
    readonly_fields = ["filename", "created_at"]
    extra = 0
    show_change_link = True


@admin.register(Album)
class AlbumAdmin(admin.ModelAdmin):
    """Admin configuration for Album model."""

    list_display = ["id", "name", "slug", "is_public", "created_at"]
    list_filter = ["is_public"]
    search_fields = ["name", "slug"]
    prepopulated_fields = {"slug": ("name",)}
    readonly_fields = ["share_key", "created_at", "updated_at"]
    raw_id_fields = ["thumbnail"]
    inlines = [MediaItemInline]
    ordering = ["-created_at"]


@admin.register(MediaItem)
class MediaItemAdmin(admin.ModelAdmin):
    """Admin configuration for MediaItem model."""

    list_display = ["id", "filename", "title", "album", "created_at"]
    list_filter = ["album"]
    search_fields = ["filename", "title", "album__slug"]
    readonly_fields = ["filename", "created_at", "updated_at"]
    raw_id_fields = ["album"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

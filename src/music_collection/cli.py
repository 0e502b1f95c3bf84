"""Command line interface for the music collection."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from .application import CollectionAPI, Envelope, build_container
from .exceptions import MusicCollectionError
from .models.config import ServiceConfig

console = Console()
err_console = Console(stderr=True)

DEFAULT_DATA_DIR = Path.home() / ".music-collection"

ApiCall = Callable[[CollectionAPI, Optional[str]], Awaitable[Envelope]]


class Session:
    """Per-invocation settings shared by all commands."""

    def __init__(self, data_dir: Path, token: Optional[str], verbose: bool):
        self.data_dir = data_dir
        self.token = token
        self.verbose = verbose

    def call(self, api_call: ApiCall, *, needs_token: bool = False) -> Dict[str, Any]:
        """Run one API call against the snapshot store and return the envelope body."""
        if needs_token and not self.token:
            console.print("[red]Error: not logged in. Pass --token or set MUSIC_COLLECTION_TOKEN.[/red]")
            sys.exit(1)

        try:
            config = ServiceConfig.from_env(allow_insecure_defaults=True)
            config.storage.data_dir = self.data_dir
            envelope = asyncio.run(self._run(config, api_call))
        except MusicCollectionError as e:
            console.print(f"[red]Error: {e}[/red]")
            sys.exit(1)

        if not envelope.ok:
            console.print(f"[red]Error ({envelope.status_code}): {envelope.body['message']}[/red]")
            sys.exit(1)
        return envelope.body

    async def _run(self, config: ServiceConfig, api_call: ApiCall) -> Envelope:
        container = build_container(config)
        await container.open()
        envelope = await api_call(CollectionAPI(container), self.token)
        await container.save()
        return envelope


pass_session = click.make_pass_decorator(Session)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.ERROR,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _print_tokens(data: Dict[str, Any]) -> None:
    user = data["user"]
    console.print(Panel(
        f"[bold]{user['username']}[/bold] <{user['email']}>\nid: {user['id']}",
        title="Signed in",
        border_style="green",
    ))
    # Plain echo: rich would wrap the long token
    click.echo(f"export MUSIC_COLLECTION_TOKEN={data['accessToken']}")
    click.echo(f"refresh token: {data['refreshToken']}")


def _pagination_line(pagination: Dict[str, int]) -> str:
    return (
        f"Page {pagination['page']} of {max(pagination['totalPages'], 1)} "
        f"({pagination['totalItems']} items)"
    )


def _track_table(tracks, title: str = "Tracks") -> Table:
    table = Table(title=title)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Title", style="cyan")
    table.add_column("Artist")
    table.add_column("Length", justify="right")
    table.add_column("Plays", justify="right")
    table.add_column("Public")
    for track in tracks:
        table.add_row(
            track["id"],
            track["title"],
            track["artist"],
            track["durationFormatted"],
            str(track["playCount"]),
            "yes" if track["isPublic"] else "no",
        )
    return table


@click.group()
@click.version_option(package_name="music-collection")
@click.option(
    '--data-dir',
    type=click.Path(file_okay=False, path_type=Path),
    envvar='MUSIC_COLLECTION_DATA_DIR',
    default=DEFAULT_DATA_DIR,
    show_default=True,
    help='Directory holding the JSON snapshots'
)
@click.option(
    '--token',
    envvar='MUSIC_COLLECTION_TOKEN',
    help='Access token (defaults to $MUSIC_COLLECTION_TOKEN)'
)
@click.option('--verbose', is_flag=True, help='Verbose output')
@click.pass_context
def cli(ctx: click.Context, data_dir: Path, token: Optional[str], verbose: bool):
    """Manage tracks and playlists in your music collection."""
    _setup_logging(verbose)
    ctx.obj = Session(data_dir, token, verbose)


# Accounts

@cli.command()
@click.argument('username')
@click.argument('email')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@pass_session
def register(session: Session, username: str, email: str, password: str):
    """Create an account and sign in."""
    body = session.call(lambda api, _: api.register(
        {"username": username, "email": email, "password": password}
    ))
    _print_tokens(body["data"])


@cli.command()
@click.argument('email')
@click.option('--password', prompt=True, hide_input=True)
@pass_session
def login(session: Session, email: str, password: str):
    """Sign in and print a fresh access token."""
    body = session.call(lambda api, _: api.login({"email": email, "password": password}))
    _print_tokens(body["data"])


@cli.command()
@pass_session
def logout(session: Session):
    """Revoke the active refresh token."""
    session.call(lambda api, token: api.logout(token), needs_token=True)
    console.print("[green]Logged out[/green]")


@cli.command()
@pass_session
def whoami(session: Session):
    """Show the signed-in user."""
    body = session.call(lambda api, token: api.me(token), needs_token=True)
    user = body["data"]
    table = Table(show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("ID", user["id"])
    table.add_row("Username", user["username"])
    table.add_row("Email", user["email"])
    table.add_row("Theme", user["preferences"]["theme"])
    console.print(table)


# Tracks

@cli.group()
def track():
    """Add, browse and play tracks."""
    pass


@track.command('add')
@click.argument('title')
@click.argument('artist')
@click.argument('duration', type=int)
@click.argument('file_url')
@click.option('--genre', help='Genre')
@click.option('--cover-url', help='Artwork URL')
@click.option('--tag', 'tags', multiple=True, help='Tag (repeatable)')
@click.option('--public', is_flag=True, help='Make the track visible to everyone')
@pass_session
def track_add(session: Session, title: str, artist: str, duration: int, file_url: str,
              genre: Optional[str], cover_url: Optional[str], tags: Tuple[str, ...], public: bool):
    """Add a track."""
    payload: Dict[str, Any] = {
        "title": title,
        "artist": artist,
        "duration": duration,
        "fileUrl": file_url,
        "tags": list(tags),
        "isPublic": public,
    }
    if genre:
        payload["genre"] = genre
    if cover_url:
        payload["coverUrl"] = cover_url
    body = session.call(lambda api, token: api.create_track(token, payload), needs_token=True)
    console.print(f"[green]Created track {body['data']['id']}[/green]")


@track.command('list')
@click.option('--search', help='Free-text search over title, artist and tags')
@click.option('--tag', 'tags', multiple=True, help='Require tag (repeatable)')
@click.option('--artist', help='Artist contains')
@click.option('--genre', help='Genre equals')
@click.option('--page', type=int, default=1, show_default=True)
@click.option('--limit', type=int, default=10, show_default=True)
@click.option('--sort', 'sort_field', help='Sort field, e.g. title or playCount')
@click.option('--order', type=click.Choice(['asc', 'desc']), help='Sort direction (ascending when --sort is given)')
@pass_session
def track_list(session: Session, search: Optional[str], tags: Tuple[str, ...], artist: Optional[str],
               genre: Optional[str], page: int, limit: int, sort_field: Optional[str], order: Optional[str]):
    """List public tracks and your own."""
    params: Dict[str, Any] = {"page": page, "limit": limit}
    for key, value in (("search", search), ("artist", artist), ("genre", genre),
                       ("sortField", sort_field), ("sortOrder", order)):
        if value:
            params[key] = value
    if tags:
        params["tags"] = list(tags)
    body = session.call(lambda api, token: api.list_tracks(token, params))
    console.print(_track_table(body["data"]))
    console.print(_pagination_line(body["pagination"]))


@track.command('show')
@click.argument('track_id')
@pass_session
def track_show(session: Session, track_id: str):
    """Show one track."""
    body = session.call(lambda api, token: api.get_track(token, track_id))
    track = body["data"]
    lines = [
        f"[bold]{track['title']}[/bold] by {track['artist']} ({track['durationFormatted']})",
        f"File: {track['fileUrl']}",
        f"Genre: {track['genre'] or '-'}",
        f"Tags: {', '.join(track['tags']) or '-'}",
        f"Plays: {track['playCount']}",
        f"Public: {'yes' if track['isPublic'] else 'no'}",
    ]
    console.print(Panel("\n".join(lines), title=track["id"]))


@track.command('play')
@click.argument('track_id')
@pass_session
def track_play(session: Session, track_id: str):
    """Record a play."""
    body = session.call(lambda api, token: api.play_track(token, track_id))
    console.print(f"Play count: {body['data']['playCount']}")


@track.command('delete')
@click.argument('track_id')
@click.confirmation_option(prompt='Delete this track from every playlist?')
@pass_session
def track_delete(session: Session, track_id: str):
    """Delete one of your tracks."""
    session.call(lambda api, token: api.delete_track(token, track_id), needs_token=True)
    console.print(f"[green]Deleted track {track_id}[/green]")


# Playlists

@cli.group()
def playlist():
    """Create, share and follow playlists."""
    pass


@playlist.command('create')
@click.argument('name')
@click.option('--description', help='Description')
@click.option('--public', is_flag=True, help='Make the playlist visible to everyone')
@pass_session
def playlist_create(session: Session, name: str, description: Optional[str], public: bool):
    """Create a playlist."""
    payload: Dict[str, Any] = {"name": name, "isPublic": public}
    if description:
        payload["description"] = description
    body = session.call(lambda api, token: api.create_playlist(token, payload), needs_token=True)
    console.print(f"[green]Created playlist {body['data']['id']}[/green]")


@playlist.command('list')
@click.option('--search', help='Free-text search over name and description')
@click.option('--following', is_flag=True, help='Only playlists you follow')
@click.option('--page', type=int, default=1, show_default=True)
@click.option('--limit', type=int, default=10, show_default=True)
@click.option('--sort', 'sort_field', help='Sort field, e.g. name or followersCount')
@click.option('--order', type=click.Choice(['asc', 'desc']), help='Sort direction (ascending when --sort is given)')
@pass_session
def playlist_list(session: Session, search: Optional[str], following: bool, page: int, limit: int,
                  sort_field: Optional[str], order: Optional[str]):
    """List public playlists and your own."""
    params: Dict[str, Any] = {"page": page, "limit": limit}
    if order:
        params["sortOrder"] = order
    if search:
        params["search"] = search
    if following:
        params["following"] = True
    if sort_field:
        params["sortField"] = sort_field
    body = session.call(lambda api, token: api.list_playlists(token, params))

    table = Table(title="Playlists")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Name", style="cyan")
    table.add_column("Tracks", justify="right")
    table.add_column("Followers", justify="right")
    table.add_column("Public")
    for item in body["data"]:
        table.add_row(
            item["id"],
            item["name"],
            str(item["trackCount"]),
            str(item["followersCount"]),
            "yes" if item["isPublic"] else "no",
        )
    console.print(table)
    console.print(_pagination_line(body["pagination"]))


@playlist.command('show')
@click.argument('playlist_id')
@click.option('--page', type=int, default=1, show_default=True)
@click.option('--limit', type=int, default=50, show_default=True)
@pass_session
def playlist_show(session: Session, playlist_id: str, page: int, limit: int):
    """Show a playlist and a page of its tracks."""
    body = session.call(
        lambda api, token: api.get_playlist(token, playlist_id, {"page": page, "limit": limit})
    )
    data = body["data"]
    console.print(Panel(
        f"[bold]{data['name']}[/bold]\n{data['description'] or ''}\n"
        f"{data['followersCount']} follower(s), {'public' if data['isPublic'] else 'private'}",
        title=data["id"],
    ))
    console.print(_track_table(data["tracks"], title="Tracks"))
    console.print(_pagination_line(body["pagination"]))


@playlist.command('add')
@click.argument('playlist_id')
@click.argument('track_ids', nargs=-1, required=True)
@pass_session
def playlist_add(session: Session, playlist_id: str, track_ids: Tuple[str, ...]):
    """Add one or more tracks to a playlist."""
    if len(track_ids) == 1:
        call = lambda api, token: api.add_track(token, playlist_id, {"trackId": track_ids[0]})
    else:
        call = lambda api, token: api.add_tracks_batch(token, playlist_id, {"trackIds": list(track_ids)})
    body = session.call(call, needs_token=True)
    console.print(f"[green]Playlist now has {body['data']['trackCount']} track(s)[/green]")


@playlist.command('remove')
@click.argument('playlist_id')
@click.argument('track_id')
@pass_session
def playlist_remove(session: Session, playlist_id: str, track_id: str):
    """Remove a track from a playlist."""
    body = session.call(
        lambda api, token: api.remove_track(token, playlist_id, track_id), needs_token=True
    )
    console.print(f"[green]Playlist now has {body['data']['trackCount']} track(s)[/green]")


@playlist.command('reorder')
@click.argument('playlist_id')
@click.argument('track_ids', nargs=-1, required=True)
@pass_session
def playlist_reorder(session: Session, playlist_id: str, track_ids: Tuple[str, ...]):
    """Set the track order; every current track must be listed once."""
    session.call(
        lambda api, token: api.reorder(token, playlist_id, {"trackIds": list(track_ids)}),
        needs_token=True,
    )
    console.print("[green]Playlist reordered[/green]")


@playlist.command('follow')
@click.argument('playlist_id')
@pass_session
def playlist_follow(session: Session, playlist_id: str):
    """Follow or unfollow a playlist."""
    body = session.call(lambda api, token: api.toggle_follow(token, playlist_id), needs_token=True)
    state = body["data"]
    verb = "Following" if state["isFollowing"] else "Unfollowed"
    console.print(f"{verb} ({state['followersCount']} follower(s))")


@playlist.command('duplicate')
@click.argument('playlist_id')
@click.option('--public', is_flag=True, help='Make the copy public')
@pass_session
def playlist_duplicate(session: Session, playlist_id: str, public: bool):
    """Copy a playlist into your collection."""
    body = session.call(
        lambda api, token: api.duplicate_playlist(token, playlist_id, {"isPublic": public}),
        needs_token=True,
    )
    console.print(f"[green]Created playlist {body['data']['id']} ({body['data']['name']})[/green]")


@playlist.command('delete')
@click.argument('playlist_id')
@click.confirmation_option(prompt='Delete this playlist?')
@pass_session
def playlist_delete(session: Session, playlist_id: str):
    """Delete one of your playlists."""
    session.call(lambda api, token: api.delete_playlist(token, playlist_id), needs_token=True)
    console.print(f"[green]Deleted playlist {playlist_id}[/green]")


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == '__main__':
    main()

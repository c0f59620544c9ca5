import functools
import logging
import os
import re

import click
from dotenv import load_dotenv
from more_itertools import chunked

from elbisaur import __version__, config
from elbisaur.client import ListenBrainzClient
from elbisaur.errors import ApiError, FormatError, ValidationError
from elbisaur.external.musicbrainz import MusicBrainzClient, parse_release_url
from elbisaur.filters import ListenFilter, ListenModifier
from elbisaur.listen import clean_listen, format_listen, set_submission_client
from elbisaur.parsers.audioscrobbler import ScrobblerLogParser
from elbisaur.parsers.musicbrainz import parse_musicbrainz_release, parse_track_range
from elbisaur.parsers.spotify import SpotifyHistoryParser
from elbisaur.timestamp import parse_timestamp
from elbisaur.utils import ListenWriter, count_values, read_listens_file

logger = logging.getLogger(__name__)

#: Track metadata given on the command line, `<artist> - <title>`.
TRACK_PATTERN = re.compile(r"^(?P<artist>.+?) -+ (?P<title>.+)$")

URL_PATTERN = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)


class ElbisaurGroup(click.Group):
    """Command group which reports expected errors without a traceback."""

    def invoke(self, ctx):
        try:
            return super().invoke(ctx)
        except (ValidationError, FormatError, ApiError) as e:
            raise click.ClickException(str(e))


FILTER_OPTIONS = [
    click.option("-a", "--after", metavar="DATETIME",
                 help="Only process tracks that were listened to after the given date/time."),
    click.option("-b", "--before", metavar="DATETIME",
                 help="Only process tracks that were listened to before the given date/time."),
    click.option("-f", "--filter", "filter_", metavar="CONDITIONS",
                 help="Filter listens by track metadata (and additional info), e.g. 'skipped!=1&&ms_played>=30e3'."),
    click.option("-x", "--exclude-list", type=click.Path(exists=True, dir_okay=False),
                 help="YAML file which maps track metadata keys to lists of forbidden values."),
    click.option("-i", "--include-list", type=click.Path(exists=True, dir_okay=False),
                 help="YAML file which maps track metadata keys to lists of allowed values."),
]


def listen_filter_options(command):
    """ Adds the filter options to a command and passes the compiled `listen_filter` instead. """
    @functools.wraps(command)
    def wrapper(*args, after, before, filter_, exclude_list, include_list, **kwargs):
        listen_filter = ListenFilter.create(filter_, after, before, exclude_list, include_list)
        return command(*args, listen_filter=listen_filter, **kwargs)

    for option in reversed(FILTER_OPTIONS):
        wrapper = option(wrapper)
    return wrapper


token_option = click.option("--token", envvar=config.TOKEN_ENV, metavar="UUID",
                            help=f"ListenBrainz user token, defaults to ${config.TOKEN_ENV}.")
preview_option = click.option("-p", "--preview", is_flag=True, help="Show listens instead of submitting/writing them.")
edit_option = click.option("-e", "--edit", "edits", multiple=True, metavar="EXPRESSION",
                           help="Edit track metadata, e.g. 'release_name=Live'. Can be repeated.")
time_offset_option = click.option("-t", "--time-offset", type=int, default=0, show_default=True,
                                  help="Add a time offset (in seconds) to all timestamps.")


def get_client(token) -> ListenBrainzClient:
    if not token:
        raise ValidationError(f"You have to specify a user token, e.g. using ${config.TOKEN_ENV}")
    return ListenBrainzClient(token)


def echo_listen(obj, listen):
    click.echo(format_listen(listen, obj.get("listen_template")))


@click.group(cls=ElbisaurGroup)
@click.version_option(__version__, prog_name="elbisaur")
@click.option("-v", "--verbose", is_flag=True, help="Show debug messages.")
@click.option("--listen-template", envvar=config.LISTEN_TEMPLATE_ENV, metavar="TEMPLATE",
              help="Template string to format a logged listen, e.g. '{date}: {artist_name} - {track_name}'.")
@click.pass_context
def cli(ctx, verbose, listen_template):
    """Manage your ListenBrainz listens and process listen dumps."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(message)s",
    )
    ctx.obj = {"listen_template": listen_template}


@cli.command(name="history")
@click.option("-u", "--user", envvar=config.USER_ENV, help="ListenBrainz username, defaults to yours.")
@click.option("-c", "--count", type=int, help="Desired number of results (API).")
@click.option("-o", "--output", type=click.Path(dir_okay=False),
              help="Write listens into the given JSONL file (append to existing file).")
@token_option
@listen_filter_options
@click.pass_obj
def history(obj, listen_filter, token, user, count, output):
    """Show the listening history of yourself or another user."""
    client = get_client(token)
    if not user:
        user = client.validate_token()
        if not user:
            raise ValidationError("Specified token is invalid")

    min_ts, max_ts = listen_filter.time_range()
    result = client.get_listens(user, min_ts=min_ts, max_ts=max_ts, count=count)
    with ListenWriter(output) as writer:
        for listen in result.listens:
            if listen_filter(listen):
                echo_listen(obj, listen)
                writer.write(listen)


@cli.command(name="delete")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@preview_option
@token_option
@listen_filter_options
@click.pass_obj
def delete(obj, listen_filter, path, preview, token):
    """Delete listens in a JSON file from history."""
    client = None if preview else get_client(token)
    count = 0
    for listen in read_listens_file(path):
        if not listen_filter(listen) or "recording_msid" not in listen:
            continue
        if preview:
            echo_listen(obj, listen)
        else:
            client.delete_listen(listen)
            count += 1
    if not preview:
        click.echo(f"{count} listens deleted")


@cli.command(name="import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@preview_option
@token_option
@listen_filter_options
@click.pass_obj
def import_listens(obj, listen_filter, path, preview, token):
    """Import listens from the given JSON file."""
    listens = (listen for listen in read_listens_file(path) if listen_filter(listen))
    if preview:
        for listen in listens:
            echo_listen(obj, listen)
        return

    client = get_client(token)
    count = 0
    for batch in chunked(map(prepare_import, listens), config.IMPORT_BATCH_SIZE):
        client.import_listens(batch)
        count += len(batch)
        click.echo(f"{count} listens imported")


def prepare_import(listen):
    listen = clean_listen(listen)
    set_submission_client(listen["track_metadata"], "elbisaur (JSON importer)", __version__)
    return listen


@cli.command(name="listen")
@click.argument("input")
@click.argument("track_range", required=False)
@click.option("--at", metavar="DATETIME", help="Date/Time when you started listening.")
@click.option("--now", is_flag=True, help="Submit a playing now notification.")
@click.option("--until", metavar="DATETIME", help="Date/Time when you stopped listening.")
@edit_option
@preview_option
@token_option
@click.pass_obj
def submit_listen(obj, input, track_range, at, now, until, edits, preview, token):
    """Submit listens for tracks of a release or a single track.

    INPUT is either a MusicBrainz release URL, "https://musicbrainz.org/release/<MBID>",
    in which case TRACK_RANGE (<first>-<last>, <number>, <prefix> or
    <medium>:<first>-<last>) selects the played tracks, or the metadata of a
    single track, "<artist> - <title>".
    """
    if now and at:
        raise ValidationError('Option "--now" conflicts with option "--at"')
    if until and (at or now):
        raise ValidationError('Option "--until" conflicts with options "--at" and "--now"')

    # the current time is the end time by default, unless a start time is given
    end_time = parse_timestamp(until)
    if end_time is None:
        raise ValidationError(f'Invalid date "{until}"')
    start_time = None
    if at:
        start_time = parse_timestamp(at)
        if start_time is None:
            raise ValidationError(f'Invalid date "{at}"')
        end_time = None

    edit_listen = ListenModifier.create(edits)

    if URL_PATTERN.match(input):
        mbid = parse_release_url(input)
        if not mbid:
            raise ValidationError("Unsupported URL, only MusicBrainz release URLs are allowed.")

        release = MusicBrainzClient().lookup_release(mbid)
        listens = parse_musicbrainz_release(release, start_time, end_time, parse_track_range(track_range))
        for listen in listens:
            edit_listen(listen)
            set_submission_client(listen["track_metadata"], "elbisaur (release submitter)", __version__)
            if preview:
                echo_listen(obj, listen)
        if preview:
            return

        client = get_client(token)
        if now:
            if len(listens) != 1:
                raise ValidationError("Playing now notification can only be submitted for one track.")
            client.playing_now(listens[0]["track_metadata"])
            click.echo("Playing now notification submitted")
        else:
            client.import_listens(listens)
            click.echo(f"{len(listens)} listens submitted")
        return

    if start_time is None and not now:
        raise ValidationError('Missing value for option "--at".')
    match = TRACK_PATTERN.match(input)
    if not match:
        raise ValidationError(f'Invalid metadata format "{input}"')

    listen = {
        "listened_at": start_time if start_time is not None else end_time,
        "track_metadata": {
            "artist_name": match["artist"],
            "track_name": match["title"],
        },
    }
    edit_listen(listen)
    track = listen["track_metadata"]
    set_submission_client(track, "elbisaur (track submitter)", __version__)
    if preview:
        echo_listen(obj, listen)
        return

    client = get_client(token)
    if now:
        client.playing_now(track)
        click.echo("Playing now notification submitted")
    else:
        client.listen(track, listen["listened_at"])
        click.echo("Listen submitted")


def log_invalid_item(item, index, reason):
    logger.info("Skipping item at index %d: %s", index, reason)


@cli.command(name="parse")
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False))
@click.argument("output_path", required=False, type=click.Path(dir_okay=False))
@click.option("-d", "--debug", is_flag=True, help="Include debugging info in listens (if available).")
@preview_option
@time_offset_option
@listen_filter_options
@click.pass_obj
def parse(obj, listen_filter, input_path, output_path, debug, preview, time_offset):
    """Parse listens from the given input file and write them into a JSONL file.

    If no output file is specified, it will have the same name as the input,
    but with a ".jsonl" extension.

    Skipped listens are not discarded by default, this should usually be done
    using a filter, e.g. `--filter skipped!=1` for a .scrobbler.log file or
    `--filter 'skipped!=1&&duration_ms>=30e3'` for Spotify history.

    Supported formats: .scrobbler.log, Spotify Extended Streaming History (*.json)
    """
    extension = os.path.splitext(input_path)[1].lower()
    if extension == ".log":
        parser = ScrobblerLogParser()
        input_file = open(input_path, mode="r", newline="", encoding="utf-8")
    elif extension == ".json":
        parser = SpotifyHistoryParser(include_debug_info=debug, on_invalid_item=log_invalid_item)
        input_file = open(input_path, mode="rb")
    else:
        raise ValidationError(f'Unsupported file format "{extension}"')

    writer = ListenWriter(None if preview else output_path or input_path + ".jsonl")
    with input_file, writer:
        for listen in parser(input_file):
            if not listen_filter(listen):
                continue
            listen["listened_at"] += time_offset
            set_submission_client(listen["track_metadata"], parser.name, __version__)
            if preview:
                echo_listen(obj, listen)
            else:
                writer.write(listen)

    if not preview:
        click.echo(f"{writer.count} listens written to {writer.path}")


@cli.command(name="statistics")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("-k", "--keys", default="artist_name,release_name", show_default=True,
              help="Comma separated track metadata keys to generate statistics for.")
@listen_filter_options
def statistics(listen_filter, path, keys):
    """Show statistics for the given JSON file."""
    keys = [key.strip() for key in keys.split(",") if key.strip()]
    listens = (listen for listen in read_listens_file(path) if listen_filter(listen))
    for key, counts in count_values(listens, keys).items():
        click.echo(f"\n{key}:")
        for value, count in counts.most_common():
            click.echo(f"{count}\t{value if value != '' else '[none]'}")


@cli.command(name="transform")
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False))
@click.argument("output_path", type=click.Path(dir_okay=False))
@edit_option
@preview_option
@time_offset_option
@listen_filter_options
@click.pass_obj
def transform(obj, listen_filter, input_path, output_path, edits, preview, time_offset):
    """Modify listens from a JSON input file and write them into a JSONL file."""
    edit_listen = ListenModifier.create(edits)
    with ListenWriter(None if preview else output_path) as writer:
        for listen in read_listens_file(input_path):
            if not listen_filter(listen):
                continue
            edit_listen(listen)
            listen["listened_at"] += time_offset
            set_submission_client(listen["track_metadata"], "elbisaur (listen transformer)", __version__,
                                  overwrite=True)
            if preview:
                echo_listen(obj, listen)
            else:
                writer.write(listen)


def main():
    # automatically load environment variables from a `.env` file
    load_dotenv(os.path.join(os.getcwd(), ".env"))
    cli()


if __name__ == "__main__":
    main()

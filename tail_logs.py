import argparse
import sys

from cwtail.config import AWS_REGION, POLL_INTERVAL, log, logs_client
from cwtail.errors import TailError
from cwtail.output import format_event
from cwtail.streams import WILDCARD, list_streams
from cwtail.tail import tail
from cwtail.timeparse import parse_time


def split_target(target):
    """'group:stream' -> ('group', 'stream'); a bare group tails every stream."""
    group, _, stream = target.partition(":")
    return group, stream or WILDCARD


def cmd_tail(args):
    group, stream = split_target(args.target)
    try:
        start = parse_time(args.start)
        end = parse_time(args.end)
    except ValueError as exc:
        print(f"cwtail: {exc}", file=sys.stderr)
        return 2

    client = logs_client(args.region)
    try:
        handle = tail(
            client, group, stream,
            follow=args.follow, retry=args.retry,
            start=start, end=end,
            grep=args.grep, grepv=args.grepv,
            poll_interval=args.poll_interval,
        )
    except TailError as exc:
        print(f"cwtail: {exc}", file=sys.stderr)
        return 1

    with handle:
        try:
            for event in handle:
                print(format_event(
                    event,
                    group=group if args.group_name else None,
                    timestamps=args.timestamp,
                    stream_name=args.stream_name,
                ), flush=True)
        except TailError as exc:
            print(f"cwtail: {exc}", file=sys.stderr)
            return 1
    return 0


def cmd_ls_groups(args):
    client = logs_client(args.region)
    for page in client.get_paginator("describe_log_groups").paginate():
        for group in page.get("logGroups", []):
            print(group["logGroupName"])
    return 0


def cmd_ls_streams(args):
    group, stream = split_target(args.target)
    client = logs_client(args.region)
    for name in list_streams(client, group, stream):
        print(name)
    return 0


def build_parser():
    parser = argparse.ArgumentParser(prog="cwtail", description="Tail CloudWatch log groups and streams.")
    parser.add_argument("--region", default=AWS_REGION)
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("tail", help="Tail a log group")
    p.add_argument("target", help="Log group, optionally with a stream prefix: group[:stream]")
    p.add_argument("-f", "--follow", action="store_true", help="Don't stop when the end of the window is reached")
    p.add_argument("-r", "--retry", action="store_true", help="Keep trying until the log group exists")
    p.add_argument("-b", "--start", default="1m", help="Start time: now, 10m, 2h, epoch millis or ISO-8601")
    p.add_argument("-e", "--end", default="", help="End time, ignored with --follow")
    p.add_argument("-g", "--grep", default="", help="CloudWatch filter pattern")
    p.add_argument("-v", "--grepv", default="", help="Drop events whose message matches this regex")
    p.add_argument("-t", "--timestamp", action="store_true", help="Print the event timestamp")
    p.add_argument("-s", "--stream-name", action="store_true", help="Print the log stream name")
    p.add_argument("-n", "--group-name", action="store_true", help="Print the log group name")
    p.add_argument("--poll-interval", type=float, default=POLL_INTERVAL, help="Seconds between queries")
    p.set_defaults(func=cmd_tail)

    ls = sub.add_parser("ls", help="List log groups or streams")
    ls_sub = ls.add_subparsers(dest="what", required=True)
    ls_sub.add_parser("groups", help="List log groups").set_defaults(func=cmd_ls_groups)
    streams = ls_sub.add_parser("streams", help="List the streams of a log group")
    streams.add_argument("target", help="group[:stream-prefix]")
    streams.set_defaults(func=cmd_ls_streams)
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except KeyboardInterrupt:
        log.debug("interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())

"""Command line: plan, push (GitHub API), local (git + push), login."""

import os
import sys
import logging
import argparse
import threading
import datetime as dt

from . import config
from .batch import synthesize
from .chain import ChainContext
from .errors import BatchFailed, InputError, NothingToSynthesize, PixelArtError
from .identity import Identity
from .scheduler import schedule, days_count
from . import yeargrid

logger = logging.getLogger("pixelart")


# ===== grid =====
def build_grid(args):
    dates = yeargrid.year_dates(args.year)
    grid = yeargrid.blank_grid(dates, args.year)
    if args.prefill:
        from .contributions import fetch_contributions
        yeargrid.levels_from_counts(grid, dates, fetch_contributions(args.prefill, args.year))
    if args.pattern:
        with open(args.pattern, encoding="utf-8") as f:
            yeargrid.apply_pattern(grid, yeargrid.parse_pattern(f.read()), args.offset)
    if args.text:
        yeargrid.apply_pattern(grid, yeargrid.rasterize_text(args.text, args.level), args.offset)
    return grid, dates


def plan_tasks(args):
    grid, dates = build_grid(args)
    tasks = schedule(grid, dates, args.year)
    print(yeargrid.render(grid))
    print(f"{args.year}: {len(tasks)} commits over {days_count(tasks)} days")
    return tasks


def with_identity(identity: Identity, args) -> Identity:
    return Identity(login=identity.login or args.name or "",
                    name=args.name or identity.name,
                    email=args.email or identity.email,
                    uid=identity.uid)


# ===== run =====
def run_synthesis(tasks, head, ctx, args):
    """Synthesize on a worker thread; Ctrl-C cancels after the in-flight call."""
    if args.resume_from:
        tasks = tasks[args.resume_from:]
        logger.info("Resuming at task %d from %s", args.resume_from, head[:7])
    result = {}

    def work():
        try:
            result["sha"] = synthesize(tasks, head, ctx, batch_size=args.batch_size,
                                       delay=args.delay)
        except PixelArtError as e:
            result["error"] = e
        except Exception as e:
            logger.debug("Worker crashed", exc_info=True)
            err = PixelArtError(f"unexpected {type(e).__name__}: {e}")
            err.__cause__ = e
            result["error"] = err

    t = threading.Thread(target=work, daemon=True)
    t.start()
    try:
        while t.is_alive():
            t.join(0.2)
    except KeyboardInterrupt:
        logger.warning("Cancelling after the current request…")
        ctx.cancel.set()
        t.join()

    err = result.get("error")
    if err:
        raise err
    return result["sha"]


def cmd_plan(args):
    plan_tasks(args)


def cmd_push(args):
    from .github import GitHubLedger, ensure_repo, get_user, make_session, repo_url

    token = args.token or os.environ.get("GITHUB_TOKEN")
    if not token:
        raise InputError("GitHub token is required (--token or GITHUB_TOKEN)")
    tasks = plan_tasks(args)
    if not tasks:
        raise NothingToSynthesize()

    session = make_session()
    identity = with_identity(get_user(token, session), args).require()
    ledger = GitHubLedger(token, args.org or identity.login, args.repo, session=session)
    head = args.head or ensure_repo(ledger, args.branch, private=not args.public, org=args.org)
    ctx = ChainContext(ledger, identity, branch=args.branch)

    logger.info("Pushing %d commits to %s/%s as %s", len(tasks), ledger.owner, ledger.repo, identity)
    sha = run_synthesis(tasks, head, ctx, args)
    print(f"Done! {ledger.owner}/{ledger.repo}@{args.branch} -> {sha[:7]}")
    print(repo_url(ledger.owner, ledger.repo))
    print("Profile → Contribution settings: enable “Include private contributions”.")


def cmd_local(args):
    from .local import LocalLedger, ensure_local_branch, local_identity, open_repo

    tasks = plan_tasks(args)
    if not tasks:
        raise NothingToSynthesize()
    repo = open_repo(args.repo_path, args.remote_url, args.token or os.environ.get("GITHUB_TOKEN"),
                     remote=args.remote)
    identity = with_identity(local_identity(repo), args).require()
    ledger = LocalLedger(repo, remote=args.remote if args.remote_url or args.push else None)
    head = args.head or ensure_local_branch(ledger, args.branch, identity)
    ctx = ChainContext(ledger, identity, branch=args.branch)

    sha = run_synthesis(tasks, head, ctx, args)
    print(f"Done! {args.repo_path}@{args.branch} -> {sha[:7]} ({ledger.pushes} pushes)")


def cmd_login(args):
    from .oauth import authorize_url, exchange_code

    if not args.code:
        client_id = args.client_id or config.CLIENT_ID
        if not client_id:
            raise InputError("GITHUB_CLIENT_ID is not set")
        print(authorize_url(client_id, args.redirect_uri))
        return
    print(exchange_code(args.code, args.client_id, args.client_secret))


# ===== parser =====
def _grid_args(p):
    p.add_argument("--year", type=int, default=dt.date.today().year)
    p.add_argument("--pattern", help="file with up to 7 rows of 0-4 ('.' = 0)")
    p.add_argument("--text", help="rasterize TEXT onto the grid")
    p.add_argument("--level", type=int, default=config.MAX_LEVEL, help="level for --text")
    p.add_argument("--offset", type=int, default=0, help="shift pattern right by N weeks")
    p.add_argument("--prefill", metavar="USER", help="start from USER's existing contributions")


def _run_args(p):
    p.add_argument("--branch", default=config.BRANCH)
    p.add_argument("--name", help="commit author name")
    p.add_argument("--email", help="commit author email")
    p.add_argument("--batch-size", type=int, default=None)
    p.add_argument("--delay", type=float, default=None, help="cool-down between batches (sec)")
    p.add_argument("--resume-from", type=int, default=0, metavar="N")
    p.add_argument("--head", metavar="SHA", help="checkpoint to resume from")


def build_parser():
    ap = argparse.ArgumentParser(prog="pixelart", description="Paint the contribution graph.")
    ap.add_argument("-v", "--verbose", action="store_true")
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("plan", help="preview the grid and count commits")
    _grid_args(p)
    p.set_defaults(func=cmd_plan)

    p = sub.add_parser("push", help="write commits through the GitHub API")
    _grid_args(p)
    _run_args(p)
    p.add_argument("--token")
    p.add_argument("--repo", default=config.REPO_NAME)
    p.add_argument("--org", help="create the repo under this org")
    p.add_argument("--public", action="store_true")
    p.set_defaults(func=cmd_push)

    p = sub.add_parser("local", help="write commits into a local repo, push each batch")
    _grid_args(p)
    _run_args(p)
    p.add_argument("--repo-path", required=True)
    p.add_argument("--remote-url", help="https://github.com/OWNER/REPO.git")
    p.add_argument("--remote", default="origin")
    p.add_argument("--push", action="store_true", help="push to an already configured remote")
    p.add_argument("--token")
    p.set_defaults(func=cmd_local)

    p = sub.add_parser("login", help="OAuth: print authorize URL, or exchange --code")
    p.add_argument("--code")
    p.add_argument("--client-id")
    p.add_argument("--client-secret")
    p.add_argument("--redirect-uri", default="http://localhost:5173/")
    p.set_defaults(func=cmd_login)
    return ap


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(levelname)s: %(message)s")
    try:
        args.func(args)
    except InputError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except BatchFailed as e:
        start = getattr(args, "resume_from", 0) + e.resume_from
        print(f"Error: {e}\nResume with: --resume-from {start} --head {e.checkpoint}",
              file=sys.stderr)
        return 1
    except (PixelArtError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0

"""Command-line web search.

Usage:
  gsearch "latest news about AI"
  gsearch --oauth --project my-project "query"
  gsearch --logout
"""

from __future__ import annotations

import sys
from typing import Optional, Sequence

from ..auth.credentials import CredentialStore
from ..auth.session import AuthSession
from ..utils.config import build_parser, init_runtime
from ..utils.errors import EmptyResultError, WebSearchError
from .search import describe_error, perform_search


def run(argv: Optional[Sequence[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    parser = build_parser("Google web search via Gemini grounding")
    parser.add_argument("query", nargs="*", help="Search query (words are joined with spaces)")
    parser.add_argument("--logout", action="store_true", help="Remove cached OAuth credentials and exit")
    args = parser.parse_args(argv)

    cfg = init_runtime(argv)

    if args.logout:
        CredentialStore(cfg.credentials_path).clear()
        print(f"Signed out; removed {cfg.credentials_path}")
        return 0

    if not args.query:
        print("Usage: gsearch <query>")
        print('Example: gsearch "latest news about AI"')
        return 1

    query = " ".join(args.query)
    session = AuthSession(cfg)
    try:
        print(perform_search(session, query))
    except EmptyResultError as e:
        print(describe_error(e, query))
    except WebSearchError as e:
        print(describe_error(e, query), file=sys.stderr)
        return 1
    return 0


def main() -> None:
    raise SystemExit(run())


if __name__ == "__main__":
    main()

"""Package entry point for ``python -m caption_clipper``.

HOW: Delegates to the CLI's main(). ``--serve`` is handled there and
starts the HTTP API instead of processing a video.
"""

from caption_clipper.cli import main

if __name__ == "__main__":
    main()

"""Package entry point for ``python -m caption_studio``.

WHY: Users run the toolkit as ``python -m caption_studio transcribe clip.mp4``
without installing the console script.

HOW: Delegates to the CLI's main() function.
"""

from caption_studio.cli import main

if __name__ == "__main__":
    main()

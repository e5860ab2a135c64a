"""Entry point: ``python -m cloudgallery`` or the ``cloudgallery`` script."""

from cloudgallery import config
from cloudgallery.app import CloudGalleryApp


def main() -> None:
    config.configure_logging()
    CloudGalleryApp().run()


if __name__ == "__main__":
    main()

"""Errors that carry help text for the people who will read them."""

from __future__ import annotations

import json
from typing import Optional, Union


class BaseError(Exception):
    """An error with a short message and longer help text for users."""

    def __init__(self, help: str = "", err: Optional[Union[BaseException, str]] = None) -> None:
        self.help = help
        self.err = err
        super().__init__(self.message)

    @property
    def message(self) -> str:
        return "" if self.err is None else str(self.err)

    def __str__(self) -> str:
        return self.message

    def to_json(self) -> str:
        return json.dumps({"help": self.help, "message": self.message})


class Missing(BaseError):
    """Something asked for does not exist."""


class UserConfigProblem(BaseError):
    """The user's configuration prevents the request from succeeding."""


class ServerException(BaseError):
    """Something went wrong on the server side."""


ERROR_DEPRECATED = BaseError(
    help="""The API endpoint requested appears to have been deprecated.

This indicates your client (fluxctl) needs to be updated: please install
the latest release.

If you still have this problem after upgrading, please file an issue
mentioning what you were attempting to do, and the output of

    fluxctl status
""",
    err="API endpoint deprecated",
)

ERROR_UNAUTHORIZED = BaseError(
    help="""The request failed authentication

This most likely means you have a missing or incorrect token. Please
make sure you supply a service token, either by setting the
environment variable FLUX_SERVICE_TOKEN, or using the argument --token
with fluxctl.

""",
    err="request failed authentication",
)


def make_api_not_found(path: str) -> BaseError:
    """An error for a request to an endpoint this server does not support."""
    return BaseError(
        help=f"""The API endpoint requested is not supported by this server.

This indicates that your client (probably fluxctl) is either out of
date, or faulty. Please install the latest release of fluxctl.

If you still have problems, please file an issue mentioning what you
were attempting to do, and the output of

    fluxctl status

and include this path:

    {path}
""",
        err="API endpoint not found",
    )


def cover_all_error(err: BaseException) -> BaseError:
    """Wrap an arbitrary error so it can be reported to a user."""
    return BaseError(
        help=f"Error: {err}\n\nThere is no more specific help for the error above.\n",
        err=err,
    )
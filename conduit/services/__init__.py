# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic and database access for a single domain aggregate:
#
#   article_service: articles, favorites and tags
#   comment_service: comments on an article
#   profile_service: public profiles and follows
#   user_service: registration, login and account updates
#
# All service functions accept an AsyncSession as their first argument
# so that the router layer controls the transaction boundary via the
# ``get_db`` dependency.  Failures are raised as ``conduit.exceptions``
# errors and rendered by the handlers registered in ``conduit.main``.

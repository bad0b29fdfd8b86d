from zora.models.core import *  # noqa: F401,F403  (register tables on Base.metadata)

"""
Gallery app.

Photo albums with resumable chunked uploads, a protected video vault,
and range-aware streaming of both.
"""

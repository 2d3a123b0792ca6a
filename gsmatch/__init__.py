"""
gsmatch
=============================================
Stable matching of two equal-sized populations with deferred acceptance.

Example:

Suppose that 3 proposers (p0, p1, p2) are to be matched one to one with 3
responders (r0, r1, r2). Each agent ranks the other side from the most
preferred to the least preferred. Agents left out of a list are unacceptable.

Proposer p0 ranks r0 > r1 > r2, p1 ranks r1 > r0 > r2, p2 ranks r0 > r1 > r2:
---------------------------------------------
  >>> proposer_pref = [[0, 1, 2],
  ...                  [1, 0, 2],
  ...                  [0, 1, 2]]
---------------------------------------------
Responder r0 ranks p1 > p0 > p2, r1 and r2 both rank p0 > p1 > p2:
---------------------------------------------
  >>> responder_pref = [[1, 0, 2],
  ...                   [0, 1, 2],
  ...                   [0, 1, 2]]
---------------------------------------------
Ids do not have to be dense. A dict {id: preference list} works as well, and
a rank map {id: rank} (rank 0 is the best) can replace a preference list.

Compute the proposer-optimal stable matching:
---------------------------------------------
  >>> import gsmatch
  >>> sol = gsmatch.compute_matching(proposer_pref, responder_pref)
  >>> dict(sol.items())
  {0: 0, 1: 1, 2: 2}
---------------------------------------------
Or build the instance first, which also gives access to the rank matrices:
---------------------------------------------
  >>> S = gsmatch.MatchingInstance(proposer_pref, responder_pref)
  >>> sol = gsmatch.solve(S)
----------------------------------------------
Let the responders propose instead to get the responder-optimal matching:
----------------------------------------------
  >>> dict(gsmatch.solve(S.swap_roles()).swap_roles().items())
  {0: 1, 1: 0, 2: 2}
----------------------------------------------
Any matching, complete or not, can be checked for blocking pairs:
----------------------------------------------
  >>> gsmatch.find_blocking_pairs(proposer_pref, responder_pref, {0: 1, 1: 0, 2: 2})
  set()
  >>> sorted(gsmatch.check_stability(S, {0: 2, 1: 1, 2: 0}).blocking_pairs)
  [(0, 0), (0, 1)]
----------------------------------------------
`compute_matching` and `solve` raise `gsmatch.NoStableMatching` when the
procedure cannot complete (e.g. a proposer with an empty preference list), and
`gsmatch.InvalidPreferenceList` on malformed preference lists.
"""

from gsmatch.errors import *
from gsmatch.instance import *
from gsmatch.random import *

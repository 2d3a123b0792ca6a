"""Random Instance Generators"""

import numpy as np

import gsmatch.instance

__all__ = ["gen_random_pref_lists", "gen_random_instance"]


def gen_random_pref_lists(num_self, num_other, pref_len=0, random_state=None):
  """Draw uniformly random preference lists for one side.

  Args:
    num_self: number of agents on this side.
    num_other: number of agents on the other side.
    pref_len: int, optional
      Length of each list. Agents outside the list are unacceptable. Default:
      full preference lists.
    random_state: None, int or `np.random.RandomState`, optional.

  Returns:
    A list of `num_self` lists of ids in [0, num_other).
  """
  rs = random_state
  if not isinstance(rs, np.random.RandomState):
    rs = np.random.RandomState(rs)
  pref_list = np.argsort(rs.rand(num_self, num_other)).tolist()
  if pref_len:
    pref_list = [li[:pref_len] for li in pref_list]
  return pref_list


def gen_random_instance(num_proposer, num_responder=None, pref_len=0,
                        random_state=None):
  """Generate a uniform random instance.

  Generate a matching instance where every proposer's and every responder's
  preference list is an independent uniformly random ordering of the other
  side.

  Args:
    num_proposer: int
      Number of proposers.
    num_responder: int, optional
      Number of responders. Default: same as `num_proposer`.
    pref_len: int, optional
      Length of every preference list. Any agent outside a preference list is
      unacceptable. Default: generate full preference lists.
    random_state: None, int or `np.random.RandomState`, optional
      Seed or generator for reproducible instances.

  Returns:
    A `MatchingInstance` object.
  """
  if num_responder is None:
    num_responder = num_proposer
  rs = random_state
  if not isinstance(rs, np.random.RandomState):
    rs = np.random.RandomState(rs)
  return gsmatch.instance.MatchingInstance(
      proposer_pref_list=gen_random_pref_lists(
          num_proposer, num_responder, pref_len, rs),
      responder_pref_list=gen_random_pref_lists(
          num_responder, num_proposer, pref_len, rs)
  )

"""Unit tests for the deferred acceptance rounds"""

import os
import sys
sys.path.insert(0, os.path.abspath('..'))

import numpy as np
import unittest
from unittest import mock

import gsmatch
from gsmatch import core
from gsmatch import utils
from gsmatch.errors import NoStableMatching


class TestRounds(unittest.TestCase):
  def setUp(self):
    # p1 takes r0 in round 1, p0 then bumps p2 out of r1 in round 2
    self.S = gsmatch.MatchingInstance(
        proposer_pref_list=[[0, 1, 2], [0, 1, 2], [1, 0, 2]],
        responder_pref_list=[[1, 0, 2], [0, 2, 1], [0, 1, 2]]
    )

  def test_initial_state(self):
    state = core.initial_state(3, 4)
    self.assertEqual(state.rejected.shape, (3, 4))
    self.assertFalse(np.any(state.rejected))
    np.testing.assert_array_equal(state.held, [-1, -1, -1, -1])

  def test_propose_phase(self):
    state = core.initial_state(3, 3)
    proposers, targets = core.propose_phase(self.S.prop_rank, state)
    np.testing.assert_array_equal(proposers, [0, 1, 2])
    np.testing.assert_array_equal(targets, [0, 0, 1])

  def test_propose_skips_rejections(self):
    state = core.initial_state(3, 3)
    state.rejected[0, 0] = True
    state.held[0] = 1
    proposers, targets = core.propose_phase(self.S.prop_rank, state)
    np.testing.assert_array_equal(proposers, [0, 2])
    np.testing.assert_array_equal(targets, [1, 1])

  def test_reject_phase(self):
    state = core.initial_state(3, 3)
    proposers, targets = core.propose_phase(self.S.prop_rank, state)
    new_state, rej_p, rej_r = core.reject_phase(
        self.S.resp_rank, state, proposers, targets)
    np.testing.assert_array_equal(new_state.held, [1, 2, -1])
    np.testing.assert_array_equal(rej_p, [0])
    np.testing.assert_array_equal(rej_r, [0])
    self.assertTrue(new_state.rejected[0, 0])
    self.assertEqual(np.sum(new_state.rejected), 1)

  def test_rounds_are_pure(self):
    state = core.initial_state(3, 3)
    state, _, _ = core.run_round(self.S.prop_rank, self.S.resp_rank, state)
    rejected, held = state.rejected.copy(), state.held.copy()
    new_state, _, _ = core.run_round(
        self.S.prop_rank, self.S.resp_rank, state)
    np.testing.assert_array_equal(state.rejected, rejected)
    np.testing.assert_array_equal(state.held, held)
    self.assertIsNot(new_state.held, state.held)
    again, _, _ = core.run_round(self.S.prop_rank, self.S.resp_rank, state)
    np.testing.assert_array_equal(again.held, new_state.held)
    np.testing.assert_array_equal(again.rejected, new_state.rejected)

  def test_held_proposer_is_displaced(self):
    state = core.initial_state(3, 3)
    state, _, _ = core.run_round(self.S.prop_rank, self.S.resp_rank, state)
    proposers, targets = core.propose_phase(self.S.prop_rank, state)
    np.testing.assert_array_equal(proposers, [0])
    np.testing.assert_array_equal(targets, [1])
    state, rej_p, rej_r = core.reject_phase(
        self.S.resp_rank, state, proposers, targets)
    np.testing.assert_array_equal(rej_p, [2])
    np.testing.assert_array_equal(rej_r, [1])
    np.testing.assert_array_equal(state.held, [1, 0, -1])
    np.testing.assert_array_equal(
        core.unassigned_proposers(state.held, 3), [2])

  def test_deferred_acceptance(self):
    prop_match, resp_match, num_rounds, num_proposals = (
        core.deferred_acceptance(self.S.prop_rank, self.S.resp_rank))
    np.testing.assert_array_equal(prop_match, [1, 0, 2])
    np.testing.assert_array_equal(resp_match, [1, 0, 2])
    self.assertEqual(num_rounds, 4)
    self.assertEqual(num_proposals, 6)

  def test_round_invariants(self):
    S = gsmatch.gen_random_instance(30, random_state=7)
    state = core.initial_state(30, 30)
    while True:
      new_state, num_proposals, _ = core.run_round(
          S.prop_rank, S.resp_rank, state)
      if num_proposals == 0:
        break
      # rejections only grow
      self.assertTrue(np.all(new_state.rejected[state.rejected]))
      # a responder never trades down
      for r in range(30):
        if state.held[r] >= 0:
          self.assertGreaterEqual(new_state.held[r], 0)
          self.assertLessEqual(S.resp_rank[r, new_state.held[r]],
                               S.resp_rank[r, state.held[r]])
      # no proposer is held twice
      held = new_state.held[new_state.held >= 0]
      self.assertEqual(len(held), len(set(held.tolist())))
      # a held proposer was never rejected by its holder
      for r in np.nonzero(new_state.held >= 0)[0]:
        self.assertFalse(new_state.rejected[new_state.held[r], r])
      state = new_state
    self.assertEqual(len(core.unassigned_proposers(state.held, 30)), 0)

  def test_dimension_mismatch(self):
    with self.assertRaises(ValueError):
      core.deferred_acceptance(np.zeros((2, 3), dtype=np.int32),
                               np.zeros((2, 3), dtype=np.int32))

  def test_exhausted_proposer(self):
    S = gsmatch.MatchingInstance([[0, 1], [0, 1]], [[0], [0]])
    with self.assertRaises(NoStableMatching) as cm:
      core.deferred_acceptance(S.prop_rank, S.resp_rank)
    self.assertEqual(cm.exception.agent, 1)
    self.assertEqual(cm.exception.side, "proposer")

  def test_tie_keeps_holder_then_earliest(self):
    resp_rank = np.array([[0, 0, 0]], dtype=np.int32)
    state = core.initial_state(3, 1)
    state, rej_p, _ = core.reject_phase(resp_rank, state, [1, 2], [0, 0])
    np.testing.assert_array_equal(state.held, [1])
    np.testing.assert_array_equal(rej_p, [2])
    state, rej_p, _ = core.reject_phase(resp_rank, state, [0], [0])
    np.testing.assert_array_equal(state.held, [1])
    np.testing.assert_array_equal(rej_p, [0])

  def test_round_without_progress(self):
    state = core.initial_state(3, 3)
    stuck = lambda resp_rank, state, proposers, targets: (
        state, np.zeros(0, dtype=np.int64), np.zeros(0, dtype=np.int64))
    with mock.patch.object(core, "reject_phase", side_effect=stuck):
      with self.assertRaises(NoStableMatching) as cm:
        core.run_round(self.S.prop_rank, self.S.resp_rank, state)
    self.assertEqual(cm.exception.agent, 0)
    self.assertIn("no progress", str(cm.exception))

  def test_too_many_proposals(self):
    state = core.initial_state(3, 3)
    with mock.patch.object(core, "run_round", return_value=(state, 1, 0)):
      with self.assertRaises(NoStableMatching) as cm:
        core.deferred_acceptance(self.S.prop_rank, self.S.resp_rank)
    self.assertIsNone(cm.exception.agent)

  def test_empty(self):
    prop_match, resp_match, num_rounds, num_proposals = (
        core.deferred_acceptance(np.zeros((0, 0), dtype=np.int32),
                                 np.zeros((0, 0), dtype=np.int32)))
    self.assertEqual(len(prop_match), 0)
    self.assertEqual(num_rounds, 0)
    self.assertEqual(num_proposals, 0)


class TestStabilityUtils(unittest.TestCase):
  def setUp(self):
    self.S = gsmatch.MatchingInstance(
        proposer_pref_list=[[0, 1, 2], [1, 0, 2], [0, 1, 2]],
        responder_pref_list=[[1, 0, 2], [0, 1, 2], [0, 1, 2]]
    )

  def test_blocking_pair_mask(self):
    prop_match = np.array([2, 1, 0])
    resp_match = np.array([2, 1, 0])
    mask = utils.blocking_pair_mask(
        self.S.prop_rank, self.S.resp_rank, prop_match, resp_match)
    self.assertEqual(mask.shape, (3, 3))
    self.assertListEqual(list(zip(*np.nonzero(mask))), [(0, 0), (0, 1)])

  def test_unmatched_pair_blocks(self):
    mask = utils.blocking_pair_mask(
        self.S.prop_rank, self.S.resp_rank, [1, 0, -1], [1, 0, -1])
    self.assertListEqual(list(zip(*np.nonzero(mask))), [(2, 2)])

  def test_check_stable(self):
    self.assertTrue(utils.check_stable(
        self.S.prop_rank, self.S.resp_rank, [0, 1, 2]))
    self.assertTrue(utils.check_stable(
        self.S.prop_rank, self.S.resp_rank, [1, 0, 2]))
    self.assertFalse(utils.check_stable(
        self.S.prop_rank, self.S.resp_rank, [2, 1, 0]))

  def test_check_perfect(self):
    self.assertTrue(utils.check_perfect([1, 0, 2], [1, 0, 2]))
    self.assertFalse(utils.check_perfect([1, 0, -1], [1, 0, -1]))
    self.assertFalse(utils.check_perfect([1, 1, 2], [1, 0, 2]))
    self.assertFalse(utils.check_perfect([0, 1], [0, 1, -1]))

  def test_enumerate_stable_matchings(self):
    stable = utils.enumerate_stable_matchings(
        self.S.prop_rank, self.S.resp_rank)
    self.assertListEqual([m.tolist() for m in stable], [[0, 1, 2], [1, 0, 2]])

  def test_recover_pref_lists(self):
    S = gsmatch.MatchingInstance([[2, 0], [1, 2, 0], []],
                                 [[0, 1], [2], [1, 0, 2]])
    self.assertListEqual(utils.recover_pref_lists(S.prop_rank),
                         [[2, 0], [1, 2, 0], []])
    self.assertListEqual(utils.recover_pref_lists(S.resp_rank),
                         [[0, 1], [2], [1, 0, 2]])


if __name__ == '__main__':
  unittest.main()

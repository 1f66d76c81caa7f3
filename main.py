import argparse
import logging
import os

import numpy as np
import matplotlib.pyplot as plt
import yaml
from tqdm import tqdm
from sklearn.model_selection import train_test_split

from metrics import evaluate
from train import train, predict
from utils import read_images, read_labels, normalize, one_hot, toy_dataset


def build_parser():
    parser = argparse.ArgumentParser(description='Training a leaky-ReLU MLP with Nesterov momentum using NumPy.')
    parser.add_argument('data_dir', type=str, nargs='?', default=None,
                        help='directory to mnist data, a toy dataset is used when omitted')
    parser.add_argument('--config', type=str, default=None, help='yaml file with hyperparameters')
    parser.add_argument('--epochs', type=int, default=10)
    parser.add_argument('--lr', type=float, default=0.1)
    parser.add_argument('--momentum', type=float, default=0.5)
    parser.add_argument('--momentum-target', type=float, default=0.9)
    parser.add_argument('--decay', type=float, default=0.95)
    parser.add_argument('--batch-size', type=int, default=128)
    parser.add_argument('--iterations', type=int, default=100, help='iterations per epoch')
    parser.add_argument('--hidden', type=int, nargs=2, default=[100, 100])
    parser.add_argument('--val-size', type=float, default=0.1)
    parser.add_argument('--seed', type=int, default=None)
    parser.add_argument('--no-plot', action='store_true')
    parser.add_argument('-v', '--verbose', action='store_true')
    return parser


def parse_args(argv=None):
    parser = build_parser()
    args, _ = parser.parse_known_args(argv)
    if args.config:
        with open(args.config) as f:
            config = yaml.safe_load(f) or {}
        parser.set_defaults(**{k.replace('-', '_'): v for k, v in config.items()})
    return parser.parse_args(argv)


def load_data(args):
    if args.data_dir is None:
        x, y = toy_dataset(1000, seed=args.seed)
        x, x_test, y, y_test = train_test_split(x, y, test_size=0.2, random_state=args.seed)
    else:
        x = normalize(read_images(os.path.join(args.data_dir, 'train-images.idx3-ubyte')))
        y = one_hot(read_labels(os.path.join(args.data_dir, 'train-labels.idx1-ubyte')), 10)
        x_test = normalize(read_images(os.path.join(args.data_dir, 't10k-images.idx3-ubyte')))
        y_test = one_hot(read_labels(os.path.join(args.data_dir, 't10k-labels.idx1-ubyte')), 10)
    x, x_val, y, y_val = train_test_split(x, y, test_size=args.val_size, random_state=args.seed)
    return x, y, x_val, y_val, x_test, y_test


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(asctime)s %(name)s %(levelname)s: %(message)s')

    x, y, x_val, y_val, x_test, y_test = load_data(args)
    loss_history = []

    with tqdm(total=args.epochs * args.iterations) as pbar:
        def report(record):
            loss_history.append(record['train_loss'])
            pbar.set_postfix(epoch=record['epoch'], loss=record['train_loss'], val_loss=record['val_loss'],
                             val_acc=record['val_accuracy'] * 100)
            pbar.update()
            if record['iteration'] == args.iterations:
                tqdm.write("Epoch %d: validation loss = %.4f, validation acc = %.2f" % (
                    record['epoch'], record['val_loss'], record['val_accuracy'] * 100))

        params = train(x, y, x_val, y_val, hidden=args.hidden, epochs=args.epochs, lr=args.lr,
                       momentum=args.momentum, momentum_target=args.momentum_target, decay=args.decay,
                       batch_size=args.batch_size, iterations=args.iterations, seed=args.seed, report=report)

    test_loss, test_acc = evaluate(predict(x_test, params), y_test)
    print("Test loss = %.4f, accuracy on test data: %.2f" % (test_loss, test_acc * 100))

    if not args.no_plot:
        loss_history = np.array(loss_history)
        cum_loss = np.cumsum(np.pad(loss_history, (10, 10), 'edge'))
        moving_avg_loss = (cum_loss[11:] - cum_loss[:-11]) / 11
        plt.plot(loss_history, label='original loss')
        plt.plot(moving_avg_loss, label='smoothed loss')
        plt.ylabel('cross entropy')
        plt.xlabel('steps')
        plt.legend()
        plt.show()


if __name__ == '__main__':
    main()
